"""
Anomaly rule registry and factory.
"""

from ..models import AnomalyConfig, AnomalyType
from .base import AnomalyRule
from .geo import haversine_km
from .usage_rules import (
    HighFuelBurnRateRule,
    MissedMaintenanceWindowRule,
    PoorWorkingToIdleRatioRule,
    SlowCycleTimeRule,
)
from .window_rules import (
    AfterHoursOperationRule,
    FrequentDiagnosticErrorsRule,
    GeofenceBreachRule,
    HighEngineTempRule,
    SuddenFuelDropRule,
)

# Registry of the rule catalog, in evaluation order
RULE_REGISTRY: dict[AnomalyType, type[AnomalyRule]] = {
    AnomalyType.POOR_WORKING_TO_IDLE_RATIO: PoorWorkingToIdleRatioRule,
    AnomalyType.HIGH_FUEL_BURN_RATE: HighFuelBurnRateRule,
    AnomalyType.SLOW_CYCLE_TIME: SlowCycleTimeRule,
    AnomalyType.MISSED_MAINTENANCE_WINDOW: MissedMaintenanceWindowRule,
    AnomalyType.GEOFENCE_BREACH: GeofenceBreachRule,
    AnomalyType.AFTER_HOURS_OPERATION: AfterHoursOperationRule,
    AnomalyType.SUDDEN_FUEL_DROP: SuddenFuelDropRule,
    AnomalyType.HIGH_ENGINE_TEMP: HighEngineTempRule,
    AnomalyType.FREQUENT_DIAGNOSTIC_ERRORS: FrequentDiagnosticErrorsRule,
}


def build_rules(config: AnomalyConfig) -> list[AnomalyRule]:
    """Instantiate the enabled rules of the catalog

    Args:
        config: Thresholds shared by every rule; ``enabled_rules`` selects the subset

    Returns:
        Rule instances in catalog order
    """
    enabled = set(config.enabled_rules)
    return [
        rule_class(config)
        for anomaly_type, rule_class in RULE_REGISTRY.items()
        if anomaly_type in enabled
    ]


def list_rules() -> list[str]:
    """List all available rule names"""
    return [anomaly_type.value for anomaly_type in RULE_REGISTRY]


__all__ = [
    "AfterHoursOperationRule",
    "AnomalyRule",
    "FrequentDiagnosticErrorsRule",
    "GeofenceBreachRule",
    "HighEngineTempRule",
    "HighFuelBurnRateRule",
    "MissedMaintenanceWindowRule",
    "PoorWorkingToIdleRatioRule",
    "RULE_REGISTRY",
    "SlowCycleTimeRule",
    "SuddenFuelDropRule",
    "build_rules",
    "haversine_km",
    "list_rules",
]
