"""
Equipment state management and raw event generation.
"""

import json
import random
import string
import uuid
from datetime import UTC, datetime
from typing import Any

from src.telemetry.models import EngineState, EventType, Severity

from .models import FaultType


class EquipmentState:
    """Tracks the state of one equipment unit over time for realistic evolution"""

    def __init__(
        self,
        equipment_id: str,
        lat_range: tuple[float, float] = (12.900, 12.910),
        long_range: tuple[float, float] = (79.100, 79.110),
    ):
        self.equipment_id = equipment_id
        self.lat_range = lat_range
        self.long_range = long_range

        self.status = EngineState.IDLE
        self.rpm = 750
        self.fuel_level = round(random.uniform(200, 400), 1)  # large tank
        self.lat = random.uniform(*lat_range)
        self.long = random.uniform(*long_range)
        self.temp = random.randint(75, 90)
        self.hydraulic_pressure = random.randint(3000, 4500)  # psi

        # Current fault state
        self.active_fault: FaultType | None = None
        self.fault_duration: int = 0
        self.storm_code: str | None = None

    def inject_fault(self, fault: FaultType) -> None:
        """Start a fault; it lasts a few ticks"""
        self.active_fault = fault
        self.fault_duration = random.randint(3, 10)

        if fault == FaultType.FUEL_THEFT:
            self.fuel_level = max(0.0, self.fuel_level - random.uniform(20, 60))
        elif fault == FaultType.GEOFENCE_DRIFT:
            self.lat += random.choice([-1, 1]) * random.uniform(0.3, 0.5)
            self.long += random.choice([-1, 1]) * random.uniform(0.3, 0.5)
        elif fault == FaultType.DIAGNOSTIC_STORM:
            self.storm_code = _random_code()

    def update(self) -> None:
        """Advance the simulated equipment by one tick"""
        self.status = random.choice(list(EngineState))

        if self.status == EngineState.RUNNING:
            self.rpm = random.randint(1200, 2200)
            self.fuel_level = max(0.0, self.fuel_level - random.uniform(1.0, 5.0))
        elif self.status == EngineState.IDLE:
            self.rpm = random.randint(600, 900)
            self.fuel_level = max(0.0, self.fuel_level - random.uniform(0.2, 1.0))
        else:
            self.rpm = 0

        # Small movement within the site unless the unit has been driven off it
        if self.active_fault != FaultType.GEOFENCE_DRIFT:
            self.lat = _clamp(self.lat + random.uniform(-0.0002, 0.0002), *self.lat_range)
            self.long = _clamp(self.long + random.uniform(-0.0002, 0.0002), *self.long_range)

        if self.active_fault == FaultType.OVERHEAT:
            self.temp = min(120, self.temp + random.randint(5, 10))
        else:
            self.temp = _clamp(self.temp + random.randint(-2, 3), 70, 110)

        self.hydraulic_pressure = _clamp(
            self.hydraulic_pressure + random.randint(-50, 50), 2500, 5000
        )

        if self.active_fault:
            self.fault_duration -= 1
            if self.fault_duration <= 0:
                self._clear_fault()

    def _clear_fault(self) -> None:
        if self.active_fault == FaultType.GEOFENCE_DRIFT:
            self.lat = random.uniform(*self.lat_range)
            self.long = random.uniform(*self.long_range)
        self.active_fault = None
        self.storm_code = None

    def event_value(self, event_type: EventType) -> dict[str, Any]:
        """Payload for one event kind from the current state"""
        if event_type == EventType.ENGINE_STATUS:
            return {"status": self.status.value, "rpm": self.rpm}
        elif event_type == EventType.FUEL_LEVEL:
            return {"level": round(self.fuel_level, 2)}
        elif event_type == EventType.LOCATION_UPDATE:
            return {"lat": round(self.lat, 6), "long": round(self.long, 6)}
        elif event_type == EventType.ENGINE_TEMP:
            return {"temp": self.temp}
        elif event_type == EventType.DIAGNOSTIC_CODE:
            if self.storm_code:
                return {"code": self.storm_code, "severity": Severity.HIGH.value}
            return {"code": _random_code(), "severity": random.choice(list(Severity)).value}
        elif event_type == EventType.PAYLOAD_CYCLE:
            return {
                "payloadTonnes": round(random.uniform(5, 40), 1),
                "cycleTimeSeconds": random.randint(30, 180),
            }
        elif event_type == EventType.HYDRAULIC_PRESSURE:
            return {"pressurePsi": self.hydraulic_pressure}
        raise ValueError(f"Unknown event type: {event_type}")

    def generate_event(
        self, event_type: EventType | None = None, timestamp: datetime | None = None
    ) -> dict[str, Any]:
        """Generate one raw_event_log row

        Args:
            event_type: Event kind to emit (default: random; forced to
                DIAGNOSTIC_CODE during a diagnostic storm)
            timestamp: Optional custom timestamp (for backfill mode)
        """
        if event_type is None:
            if self.storm_code and random.random() < 0.5:
                event_type = EventType.DIAGNOSTIC_CODE
            else:
                event_type = random.choice(list(EventType))

        return {
            "id": str(uuid.uuid4()),
            "timestamp": timestamp or datetime.now(UTC),
            "equipment_id": self.equipment_id,
            "event_type": event_type.value,
            "value": json.dumps(self.event_value(event_type)),
        }


def _clamp(value, lower, upper):
    return min(upper, max(lower, value))


def _random_code() -> str:
    return "P" + "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
