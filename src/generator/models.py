"""
Data models and enums for the equipment telemetry simulator.
"""

from dataclasses import dataclass
from enum import Enum


class FaultType(Enum):
    """Faults that can be injected into an equipment's telemetry"""

    OVERHEAT = "overheat"
    FUEL_THEFT = "fuel_theft"
    GEOFENCE_DRIFT = "geofence_drift"
    DIAGNOSTIC_STORM = "diagnostic_storm"


@dataclass
class GeneratorConfig:
    """Configuration for the telemetry simulator"""

    # PostgreSQL settings
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "fleet_db"
    postgres_user: str = "fleet"
    postgres_password: str = "fleet_password"

    # Generation settings
    event_interval_seconds: float = 3.0
    events_per_tick: int = 1  # events per rented equipment per tick
    equipment_refresh_ticks: int = 20  # re-read rented equipment every N ticks

    # Fault settings
    fault_probability: float = 0.02
    enabled_faults: list[FaultType] | None = None

    # Site the simulated equipment works on (lat/long bounding box)
    site_lat_min: float = 12.900
    site_lat_max: float = 12.910
    site_long_min: float = 79.100
    site_long_max: float = 79.110

    def __post_init__(self):
        if self.enabled_faults is None:
            self.enabled_faults = list(FaultType)
        if not 0.0 <= self.fault_probability <= 1.0:
            raise ValueError("fault_probability must be between 0 and 1")
