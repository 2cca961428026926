"""
Telemetry simulator writing raw equipment events into the store.
"""

import random
import time
from datetime import UTC, datetime, timedelta

import structlog

from .database import GeneratorDatabase
from .equipment_state import EquipmentState
from .models import GeneratorConfig

logger = structlog.get_logger(__name__)


class TelemetryGenerator:
    """Simulates the edge devices of every rented equipment unit"""

    def __init__(self, config: GeneratorConfig, db: GeneratorDatabase | None = None):
        self.config = config
        logger.info("Initializing telemetry generator", config=config)

        self.db = db if db is not None else GeneratorDatabase(config)
        if not self.db.check_health():
            raise RuntimeError("Database health check failed")

        # State per equipment, kept across refreshes of the rented list
        self.equipment: dict[str, EquipmentState] = {}
        self.refresh_equipment()

        logger.info(
            "Fault configuration",
            probability=config.fault_probability,
            enabled_faults=[f.value for f in config.enabled_faults],
        )

    def refresh_equipment(self) -> list[str]:
        """Sync simulated units with the equipment currently on rent"""
        rented = self.db.discover_rented_equipment()
        for equipment_id in rented:
            if equipment_id not in self.equipment:
                self.equipment[equipment_id] = EquipmentState(
                    equipment_id,
                    lat_range=(self.config.site_lat_min, self.config.site_lat_max),
                    long_range=(self.config.site_long_min, self.config.site_long_max),
                )
        logger.debug("Rented equipment refreshed", count=len(rented))
        return rented

    def generate_tick(self, rented: list[str], timestamp: datetime | None = None) -> int:
        """Generate and store one round of events for the given equipment

        Returns:
            Number of events inserted
        """
        events = []
        for equipment_id in rented:
            state = self.equipment[equipment_id]

            if self.config.enabled_faults and random.random() < self.config.fault_probability:
                fault = random.choice(self.config.enabled_faults)
                state.inject_fault(fault)
                logger.warning("Fault injected", fault=fault.value, equipment_id=equipment_id)

            state.update()
            for _ in range(self.config.events_per_tick):
                events.append(state.generate_event(timestamp=timestamp))

        return self.db.insert_batch_events(events)

    def run(self, duration_seconds: int = None):
        """Run the generator continuously or for a specified duration

        Args:
            duration_seconds: Optional duration in seconds. If None, runs indefinitely.
        """
        logger.info(
            "Starting generator",
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        event_count = 0
        tick = 0
        rented = list(self.equipment)
        last_log_time = start_time

        try:
            while True:
                if tick % self.config.equipment_refresh_ticks == 0 and tick > 0:
                    rented = self.refresh_equipment()

                if rented:
                    event_count += self.generate_tick(rented)
                else:
                    logger.info("No rented equipment found, waiting")

                tick += 1
                elapsed = time.time() - start_time

                if time.time() - last_log_time >= 10:
                    rate = event_count / elapsed if elapsed > 0 else 0
                    logger.info(
                        "Generator stats",
                        total_events=event_count,
                        equipment=len(rented),
                        rate_per_sec=round(rate, 1),
                        elapsed_sec=round(elapsed, 1),
                    )
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

                time.sleep(self.config.event_interval_seconds)

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping generator")

        except Exception as e:
            logger.error("Generator error", error=str(e), exc_info=True)
            raise

        finally:
            elapsed = time.time() - start_time
            self.db.close()
            logger.info(
                "Generator stopped",
                total_events=event_count,
                elapsed_sec=round(elapsed, 1),
            )

    def run_backfill(self, hours: int, interval_seconds: int = 360) -> int:
        """Generate historical events quickly, one tick every ``interval_seconds``

        Returns:
            Number of events inserted
        """
        rented = list(self.equipment)
        if not rented:
            logger.warning("No rented equipment found, nothing to backfill")
            return 0

        now = datetime.now(UTC)
        timestamp = now - timedelta(hours=hours)
        event_count = 0

        logger.info("Starting backfill", hours=hours, interval_seconds=interval_seconds)
        while timestamp <= now:
            event_count += self.generate_tick(rented, timestamp=timestamp)
            timestamp += timedelta(seconds=interval_seconds)

        logger.info("Backfill completed", total_events=event_count)
        return event_count
