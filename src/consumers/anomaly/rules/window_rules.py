"""
Rules evaluated on the recent event window of a contract line's equipment.

The window is fetched once per line and shared by every rule below; it is
ordered oldest first. Malformed events (``payload is None``) never match.
"""

from collections import Counter
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from src.telemetry.models import (
    DiagnosticCode,
    EngineState,
    EngineStatus,
    EngineTemp,
    FuelLevel,
    Location,
    Severity,
    TelemetryRecord,
    UsageStatistics,
)

from ..models import AnomalyCandidate, AnomalyConfig, AnomalyType, RuleContext
from .base import AnomalyRule
from .geo import haversine_km


def _payloads_of(window: list[TelemetryRecord], payload_type: type) -> list[TelemetryRecord]:
    return [event for event in window if isinstance(event.payload, payload_type)]


class GeofenceBreachRule(AnomalyRule):
    """Latest known position is outside the contract site's radius"""

    anomaly_type = AnomalyType.GEOFENCE_BREACH

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        locations = _payloads_of(window, Location)
        if not locations:
            return None

        latest = max(locations, key=lambda event: event.timestamp).payload
        site = context.geofence
        distance = haversine_km(site.center_lat, site.center_long, latest.lat, latest.long)

        if distance > site.radius_km:
            return AnomalyCandidate(
                anomaly_type=self.anomaly_type,
                severity=Severity.HIGH,
                details={
                    "lastKnownLocation": {"lat": latest.lat, "long": latest.long},
                    "site": context.line_item.site_id,
                    "distanceKm": round(distance, 2),
                    "radiusKm": site.radius_km,
                },
            )
        return None


class AfterHoursOperationRule(AnomalyRule):
    """Engine on outside the site's working hours"""

    anomaly_type = AnomalyType.AFTER_HOURS_OPERATION

    def __init__(self, config: AnomalyConfig):
        super().__init__(config)
        self.timezone = ZoneInfo(config.site_timezone)

    def local_hour(self, timestamp: datetime) -> int:
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return timestamp.astimezone(self.timezone).hour

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        for event in _payloads_of(window, EngineStatus):
            if event.payload.status is EngineState.OFF:
                continue
            hour = self.local_hour(event.timestamp)
            if hour < self.config.working_hours_start or hour > self.config.working_hours_end:
                return AnomalyCandidate(
                    anomaly_type=self.anomaly_type,
                    severity=Severity.MEDIUM,
                    details={"eventTime": event.timestamp.isoformat()},
                )
        return None


class SuddenFuelDropRule(AnomalyRule):
    """Fuel level fell sharply between two consecutive readings"""

    anomaly_type = AnomalyType.SUDDEN_FUEL_DROP

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        readings = sorted(_payloads_of(window, FuelLevel), key=lambda event: event.timestamp)

        for previous, current in zip(readings, readings[1:], strict=False):
            from_level = previous.payload.level
            to_level = current.payload.level
            if from_level - to_level > self.config.max_fuel_drop:
                return AnomalyCandidate(
                    anomaly_type=self.anomaly_type,
                    severity=Severity.HIGH,
                    details={"fromLevel": from_level, "toLevel": to_level},
                )
        return None


class HighEngineTempRule(AnomalyRule):
    anomaly_type = AnomalyType.HIGH_ENGINE_TEMP

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        for event in _payloads_of(window, EngineTemp):
            if event.payload.temp > self.config.max_engine_temp:
                return AnomalyCandidate(
                    anomaly_type=self.anomaly_type,
                    severity=Severity.HIGH,
                    details={
                        "temperature": event.payload.temp,
                        "threshold": self.config.max_engine_temp,
                    },
                )
        return None


class FrequentDiagnosticErrorsRule(AnomalyRule):
    """The same diagnostic code reported repeatedly within the window

    The count is reported as ``countInWindow`` rather than ``countInLastHour``
    because the look-back length comes from ``lookback_minutes``.
    """

    anomaly_type = AnomalyType.FREQUENT_DIAGNOSTIC_ERRORS

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        counts = Counter(event.payload.code for event in _payloads_of(window, DiagnosticCode))
        if not counts:
            return None

        # Ties go to the code seen first
        code, count = counts.most_common(1)[0]
        if count >= self.config.diagnostic_repeat_threshold:
            return AnomalyCandidate(
                anomaly_type=self.anomaly_type,
                severity=Severity.MEDIUM,
                details={"errorCode": code, "countInWindow": count},
            )
        return None
