"""
Rules evaluated on the cumulative usage statistics of a contract line.
"""

import math

from src.telemetry.models import Severity, TelemetryRecord, UsageStatistics

from ..models import AnomalyCandidate, AnomalyType, RuleContext
from .base import AnomalyRule


class PoorWorkingToIdleRatioRule(AnomalyRule):
    """Too much idling relative to engine time, once enough hours are logged"""

    anomaly_type = AnomalyType.POOR_WORKING_TO_IDLE_RATIO

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        if (
            stats.working_to_idle_ratio < self.config.min_working_to_idle_ratio
            and stats.total_engine_hours > self.config.ratio_min_engine_hours
        ):
            return AnomalyCandidate(
                anomaly_type=self.anomaly_type,
                severity=Severity.MEDIUM,
                details={
                    "workingToIdleRatio": round(stats.working_to_idle_ratio, 2),
                    "threshold": self.config.min_working_to_idle_ratio,
                },
            )
        return None


class HighFuelBurnRateRule(AnomalyRule):
    anomaly_type = AnomalyType.HIGH_FUEL_BURN_RATE

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        if (
            stats.fuel_burn_rate > self.config.max_fuel_burn_rate
            and stats.working_hours > self.config.burn_rate_min_working_hours
        ):
            return AnomalyCandidate(
                anomaly_type=self.anomaly_type,
                severity=Severity.LOW,
                details={
                    "currentBurnRate": round(stats.fuel_burn_rate, 2),
                    "benchmarkRate": self.config.benchmark_fuel_burn_rate,
                },
            )
        return None


class SlowCycleTimeRule(AnomalyRule):
    anomaly_type = AnomalyType.SLOW_CYCLE_TIME

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        # No cycles recorded yet means no average to judge
        if stats.cycle_count == 0:
            return None
        if stats.avg_cycle_time_seconds > self.config.max_avg_cycle_time_seconds:
            return AnomalyCandidate(
                anomaly_type=self.anomaly_type,
                severity=Severity.LOW,
                details={
                    "avgCycleTimeSeconds": stats.avg_cycle_time_seconds,
                    "benchmarkSeconds": self.config.benchmark_cycle_time_seconds,
                },
            )
        return None


class MissedMaintenanceWindowRule(AnomalyRule):
    """Engine hours just crossed a service interval boundary"""

    anomaly_type = AnomalyType.MISSED_MAINTENANCE_WINDOW

    def evaluate(
        self, stats: UsageStatistics, window: list[TelemetryRecord], context: RuleContext
    ) -> AnomalyCandidate | None:
        interval = self.config.maintenance_interval_hours
        hours = stats.total_engine_hours

        if hours > interval and (hours % interval) < self.config.maintenance_margin_hours:
            return AnomalyCandidate(
                anomaly_type=self.anomaly_type,
                severity=Severity.MEDIUM,
                details={
                    "totalEngineHours": hours,
                    "nextServiceDueAt": math.ceil(hours / interval) * interval,
                },
            )
        return None
