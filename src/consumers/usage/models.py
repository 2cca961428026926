"""
Data models and configuration for the usage aggregator.
"""

from dataclasses import asdict, dataclass


@dataclass
class UsageConfig:
    """Configuration for the usage aggregation job"""

    # Each ENGINE_STATUS record stands for one sampling tick (~6 minutes)
    hours_per_record: float = 0.1
    # Estimated fuel burn per engine hour, in the tank's units
    fuel_rate_per_hour: float = 5.5

    # Event counters kept alongside the cumulative statistics
    engine_temp_alert_threshold: float = 100.0
    fuel_drop_alert_threshold: float = 10.0

    # PostgreSQL settings
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "fleet_db"
    postgres_user: str = "fleet"
    postgres_password: str = "fleet_password"
    statement_timeout_ms: int = 30000

    def __post_init__(self):
        if self.hours_per_record <= 0:
            raise ValueError("hours_per_record must be positive")
        if self.fuel_rate_per_hour < 0:
            raise ValueError("fuel_rate_per_hour must not be negative")


@dataclass(frozen=True)
class BatchDelta:
    """Incremental contribution of one group of unprocessed events"""

    engine_hours: float = 0.0
    idle_hours: float = 0.0
    fuel_consumed: float = 0.0
    payload_moved_tonnes: float = 0.0
    cycle_time_seconds: float = 0.0
    cycle_count: int = 0
    high_engine_temp_alerts: int = 0
    sudden_fuel_drops: int = 0
    diagnostic_errors: int = 0
    malformed_records: int = 0

    @property
    def is_empty(self) -> bool:
        return all(
            value == 0 for key, value in asdict(self).items() if key != "malformed_records"
        )


@dataclass
class ProcessingReport:
    """Outcome of one aggregation run"""

    groups_processed: int = 0
    groups_skipped: int = 0
    groups_failed: int = 0
    records_processed: int = 0
    records_already_claimed: int = 0
    malformed_records: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
