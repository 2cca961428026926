"""
Predefined configurations for different simulation scenarios.
"""

from .models import FaultType, GeneratorConfig

# Normal operation (rare faults)
NORMAL_CONFIG = GeneratorConfig(
    fault_probability=0.005,
    event_interval_seconds=5.0,
)


# Chaos mode (frequent faults, all types)
CHAOS_CONFIG = GeneratorConfig(
    fault_probability=0.1,
    events_per_tick=3,
    event_interval_seconds=1.0,
)


# Fuel theft and geofence breaches only
SECURITY_FOCUS_CONFIG = GeneratorConfig(
    fault_probability=0.03,
    enabled_faults=[FaultType.FUEL_THEFT, FaultType.GEOFENCE_DRIFT],
    event_interval_seconds=3.0,
)


# Development/Testing (fast and small)
DEV_CONFIG = GeneratorConfig(fault_probability=0.02, event_interval_seconds=1.0)
