"""
Data model shared by the usage aggregator and the anomaly detector.

Raw event payloads vary by event kind. They are parsed once, at the store
boundary, into one small frozen dataclass per kind so that the accumulator
and the rules dispatch on the payload class instead of probing dict keys.
"""

import json
import math
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Union


class EventType(str, Enum):
    """Kinds of raw telemetry events emitted by equipment"""

    ENGINE_STATUS = "ENGINE_STATUS"
    FUEL_LEVEL = "FUEL_LEVEL"
    LOCATION_UPDATE = "LOCATION_UPDATE"
    ENGINE_TEMP = "ENGINE_TEMP"
    DIAGNOSTIC_CODE = "DIAGNOSTIC_CODE"
    PAYLOAD_CYCLE = "PAYLOAD_CYCLE"
    HYDRAULIC_PRESSURE = "HYDRAULIC_PRESSURE"


class EngineState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    OFF = "OFF"


class Severity(str, Enum):
    """Severity scale used by diagnostic codes and anomalies"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class MalformedPayloadError(ValueError):
    """Raised when an event payload lacks a field required by its kind"""


# ========================================
# Payloads (one per event kind)
# ========================================


@dataclass(frozen=True)
class EngineStatus:
    status: EngineState
    rpm: float


@dataclass(frozen=True)
class FuelLevel:
    level: float


@dataclass(frozen=True)
class Location:
    lat: float
    long: float


@dataclass(frozen=True)
class EngineTemp:
    temp: float


@dataclass(frozen=True)
class DiagnosticCode:
    code: str
    severity: Severity


@dataclass(frozen=True)
class PayloadCycle:
    payload_tonnes: float
    cycle_time_seconds: float


@dataclass(frozen=True)
class HydraulicPressure:
    pressure_psi: float


Payload = Union[
    EngineStatus,
    FuelLevel,
    Location,
    EngineTemp,
    DiagnosticCode,
    PayloadCycle,
    HydraulicPressure,
]


def _number(value: dict[str, Any], key: str) -> float:
    try:
        raw = value[key]
    except KeyError:
        raise MalformedPayloadError(f"missing field '{key}'") from None
    if isinstance(raw, bool):
        raise MalformedPayloadError(f"field '{key}' is not numeric: {raw!r}")
    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise MalformedPayloadError(f"field '{key}' is not numeric: {raw!r}") from None
    if not math.isfinite(number):
        raise MalformedPayloadError(f"field '{key}' is not finite: {raw!r}")
    return number


def _member(value: dict[str, Any], key: str, enum_class: type[Enum]) -> Enum:
    try:
        return enum_class(value[key])
    except KeyError:
        raise MalformedPayloadError(f"missing field '{key}'") from None
    except ValueError:
        raise MalformedPayloadError(
            f"field '{key}' has unknown value {value[key]!r}"
        ) from None


def parse_payload(event_type: EventType, value: dict[str, Any]) -> Payload:
    """Build the typed payload for an event kind from its JSON value

    Raises:
        MalformedPayloadError: If a field required by the kind is missing or invalid
    """
    if not isinstance(value, dict):
        raise MalformedPayloadError(f"payload is not an object: {value!r}")

    if event_type is EventType.ENGINE_STATUS:
        return EngineStatus(
            status=_member(value, "status", EngineState),
            rpm=_number(value, "rpm"),
        )
    elif event_type is EventType.FUEL_LEVEL:
        return FuelLevel(level=_number(value, "level"))
    elif event_type is EventType.LOCATION_UPDATE:
        return Location(lat=_number(value, "lat"), long=_number(value, "long"))
    elif event_type is EventType.ENGINE_TEMP:
        return EngineTemp(temp=_number(value, "temp"))
    elif event_type is EventType.DIAGNOSTIC_CODE:
        if not isinstance(value.get("code"), str) or not value["code"]:
            raise MalformedPayloadError("missing field 'code'")
        return DiagnosticCode(
            code=value["code"],
            severity=_member(value, "severity", Severity),
        )
    elif event_type is EventType.PAYLOAD_CYCLE:
        return PayloadCycle(
            payload_tonnes=_number(value, "payloadTonnes"),
            cycle_time_seconds=_number(value, "cycleTimeSeconds"),
        )
    elif event_type is EventType.HYDRAULIC_PRESSURE:
        return HydraulicPressure(pressure_psi=_number(value, "pressurePsi"))

    raise MalformedPayloadError(f"unsupported event type {event_type!r}")


# ========================================
# Records
# ========================================


@dataclass(frozen=True)
class TelemetryRecord:
    """One timestamped observation from one piece of equipment

    ``payload`` is None when the stored value did not match its kind; such
    records are still consumed by the aggregator but contribute nothing.
    """

    id: str
    timestamp: datetime
    equipment_id: str
    event_type: EventType
    payload: Payload | None
    is_processed: bool = False

    @property
    def is_malformed(self) -> bool:
        return self.payload is None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TelemetryRecord":
        """Create from a raw_event_log row, tolerating malformed payloads"""
        event_type = EventType(row["event_type"])
        value = row["value"]
        try:
            if isinstance(value, str):
                value = json.loads(value)
            payload = parse_payload(event_type, value)
        except ValueError:
            # JSONDecodeError and MalformedPayloadError both land here
            payload = None

        return cls(
            id=row["id"],
            timestamp=row["timestamp"],
            equipment_id=row["equipment_id"],
            event_type=event_type,
            payload=payload,
            is_processed=row.get("is_processed", False),
        )


@dataclass(frozen=True)
class SiteGeofence:
    """Circular operating area registered for a contract's site"""

    center_lat: float
    center_long: float
    radius_km: float


@dataclass(frozen=True)
class ContractLine:
    """Billable assignment of one equipment unit to one contract"""

    line_item_id: str
    equipment_id: str
    contract_id: str
    start_date: datetime
    end_date: datetime
    site_id: str | None = None
    geofence: SiteGeofence | None = None

    def is_active(self, now: datetime) -> bool:
        return self.start_date <= now <= self.end_date

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ContractLine":
        geofence = None
        if row.get("center_lat") is not None and row.get("center_long") is not None:
            geofence = SiteGeofence(
                center_lat=row["center_lat"],
                center_long=row["center_long"],
                radius_km=row["radius_km"],
            )
        return cls(
            line_item_id=row["line_item_id"],
            equipment_id=row["equipment_id"],
            contract_id=row["contract_id"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            site_id=row.get("site_id"),
            geofence=geofence,
        )


@dataclass
class UsageStatistics:
    """Cumulative and derived operational metrics for one contract line

    The derived fields (working hours, ratio, burn rate, average cycle time)
    are only ever written by ``usage.accumulator.merge``.
    """

    line_item_id: str

    # Cumulative
    total_engine_hours: float = 0.0
    total_idle_hours: float = 0.0
    fuel_consumed: float = 0.0
    payload_moved_tonnes: float = 0.0
    total_cycle_time_seconds: float = 0.0
    cycle_count: int = 0
    high_engine_temp_alerts: int = 0
    sudden_fuel_drops: int = 0
    diagnostic_errors: int = 0

    # Derived
    working_hours: float = 0.0
    working_to_idle_ratio: float = 0.0
    fuel_burn_rate: float = 0.0
    avg_cycle_time_seconds: float = 0.0

    version: int = 0

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database insertion"""
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UsageStatistics":
        """Create from a line_item_usage row, ignoring columns not on the model"""
        names = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in row.items() if key in names})
