"""
Telemetry data model: raw events, contract lines and usage statistics.
"""

from .models import (
    ContractLine,
    DiagnosticCode,
    EngineState,
    EngineStatus,
    EngineTemp,
    EventType,
    FuelLevel,
    HydraulicPressure,
    Location,
    MalformedPayloadError,
    Payload,
    PayloadCycle,
    Severity,
    SiteGeofence,
    TelemetryRecord,
    UsageStatistics,
    parse_payload,
)

__all__ = [
    "ContractLine",
    "DiagnosticCode",
    "EngineState",
    "EngineStatus",
    "EngineTemp",
    "EventType",
    "FuelLevel",
    "HydraulicPressure",
    "Location",
    "MalformedPayloadError",
    "Payload",
    "PayloadCycle",
    "Severity",
    "SiteGeofence",
    "TelemetryRecord",
    "UsageStatistics",
    "parse_payload",
]
