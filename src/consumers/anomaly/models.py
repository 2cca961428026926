"""
Data models and configuration for the anomaly detection job.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.telemetry.models import ContractLine, Severity, SiteGeofence


class AnomalyType(str, Enum):
    """Rule violations the detector can report"""

    POOR_WORKING_TO_IDLE_RATIO = "POOR_WORKING_TO_IDLE_RATIO"
    HIGH_FUEL_BURN_RATE = "HIGH_FUEL_BURN_RATE"
    SLOW_CYCLE_TIME = "SLOW_CYCLE_TIME"
    GEOFENCE_BREACH = "GEOFENCE_BREACH"
    AFTER_HOURS_OPERATION = "AFTER_HOURS_OPERATION"
    SUDDEN_FUEL_DROP = "SUDDEN_FUEL_DROP"
    HIGH_ENGINE_TEMP = "HIGH_ENGINE_TEMP"
    FREQUENT_DIAGNOSTIC_ERRORS = "FREQUENT_DIAGNOSTIC_ERRORS"
    MISSED_MAINTENANCE_WINDOW = "MISSED_MAINTENANCE_WINDOW"


class AnomalyStatus(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"


@dataclass
class AnomalyConfig:
    """Configuration for the anomaly detection job"""

    # Usage statistics rules
    min_working_to_idle_ratio: float = 50.0
    ratio_min_engine_hours: float = 10.0
    max_fuel_burn_rate: float = 10.0
    burn_rate_min_working_hours: float = 5.0
    benchmark_fuel_burn_rate: float = 8.0
    max_avg_cycle_time_seconds: float = 150.0
    benchmark_cycle_time_seconds: float = 120.0
    maintenance_interval_hours: float = 250.0
    maintenance_margin_hours: float = 10.0

    # Recent window rules
    lookback_minutes: int = 60
    max_engine_temp: float = 102.0
    max_fuel_drop: float = 15.0
    diagnostic_repeat_threshold: int = 3
    working_hours_start: int = 6  # first allowed local hour
    working_hours_end: int = 19  # last allowed local hour
    site_timezone: str = "Asia/Kolkata"

    # Used for contracts whose site has no registered geofence
    default_site_lat: float = 12.9716
    default_site_long: float = 79.1588
    default_site_radius_km: float = 5.0

    enabled_rules: list[AnomalyType] = field(default_factory=lambda: list(AnomalyType))

    # PostgreSQL settings
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "fleet_db"
    postgres_user: str = "fleet"
    postgres_password: str = "fleet_password"
    statement_timeout_ms: int = 30000

    def __post_init__(self):
        if self.lookback_minutes <= 0:
            raise ValueError("lookback_minutes must be positive")
        if self.maintenance_interval_hours <= 0:
            raise ValueError("maintenance_interval_hours must be positive")
        if not 0 <= self.working_hours_start <= self.working_hours_end <= 23:
            raise ValueError("working hours must satisfy 0 <= start <= end <= 23")

    @property
    def default_geofence(self) -> SiteGeofence:
        return SiteGeofence(
            center_lat=self.default_site_lat,
            center_long=self.default_site_long,
            radius_km=self.default_site_radius_km,
        )


@dataclass(frozen=True)
class RuleContext:
    """Per-line facts a rule may need besides statistics and events"""

    line_item: ContractLine
    geofence: SiteGeofence
    now: datetime


@dataclass(frozen=True)
class AnomalyCandidate:
    """Output of a rule that fired"""

    anomaly_type: AnomalyType
    severity: Severity
    details: dict[str, Any]


@dataclass
class AnomalyRecord:
    """Represents a detected anomaly for database insertion"""

    line_item_id: str
    anomaly_type: AnomalyType
    severity: Severity
    details: dict[str, Any]
    timestamp: datetime
    status: AnomalyStatus = AnomalyStatus.UNRESOLVED
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_candidate(
        cls, line_item_id: str, candidate: AnomalyCandidate, now: datetime
    ) -> "AnomalyRecord":
        return cls(
            line_item_id=line_item_id,
            anomaly_type=candidate.anomaly_type,
            severity=candidate.severity,
            details=candidate.details,
            timestamp=now,
        )

    def to_db_dict(self) -> dict:
        """Convert to dict for database insertion"""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "line_item_id": self.line_item_id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "details": json.dumps(self.details, default=str),
        }


@dataclass
class DetectionReport:
    """Outcome of one detection run"""

    lines_evaluated: int = 0
    lines_failed: int = 0
    candidates_found: int = 0
    anomalies_created: int = 0
    duplicates_suppressed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
