"""
Equipment Telemetry Simulator
Writes realistic raw equipment events into the store, with optional fault injection.
"""

from .config import CHAOS_CONFIG, DEV_CONFIG, NORMAL_CONFIG, SECURITY_FOCUS_CONFIG
from .equipment_state import EquipmentState
from .generator import TelemetryGenerator
from .models import FaultType, GeneratorConfig

__all__ = [
    "FaultType",
    "GeneratorConfig",
    "EquipmentState",
    "TelemetryGenerator",
    "NORMAL_CONFIG",
    "CHAOS_CONFIG",
    "SECURITY_FOCUS_CONFIG",
    "DEV_CONFIG",
]

__version__ = "1.0.0"
