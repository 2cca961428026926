"""
Batch job folding unprocessed telemetry into per-contract-line usage statistics.
"""

import time
from collections import defaultdict
from datetime import UTC, datetime

import structlog

from src.telemetry.models import TelemetryRecord, UsageStatistics

from .accumulator import compute_batch_delta, merge
from .database import UsageDatabase
from .models import ProcessingReport, UsageConfig

logger = structlog.get_logger(__name__)


class UsageAggregator:
    """Aggregates raw events into usage statistics, one equipment group at a time"""

    def __init__(self, config: UsageConfig, db: UsageDatabase | None = None):
        self.config = config

        self.db = db if db is not None else UsageDatabase(config)
        if not self.db.check_health():
            raise RuntimeError("Database health check failed")

        logger.info(
            "Usage aggregator initialized",
            hours_per_record=config.hours_per_record,
            fuel_rate_per_hour=config.fuel_rate_per_hour,
        )

    def run(self, now: datetime | None = None) -> ProcessingReport:
        """Process every unprocessed event once

        Args:
            now: Reference instant for contract line resolution (default: current UTC time)

        Returns:
            ProcessingReport with per-group outcome counts
        """
        now = now or datetime.now(UTC)
        report = ProcessingReport()
        start_time = time.time()

        events = self.db.fetch_unprocessed_events()
        if not events:
            logger.info("No new events to process")
            return report

        groups: dict[str, list[TelemetryRecord]] = defaultdict(list)
        for event in events:
            groups[event.equipment_id].append(event)

        logger.info("Starting usage aggregation", events=len(events), equipment=len(groups))

        for equipment_id, group in groups.items():
            self._process_group(equipment_id, group, now, report)

        logger.info(
            "Usage aggregation completed",
            **report.to_dict(),
            elapsed_sec=round(time.time() - start_time, 2),
        )
        return report

    def _process_group(
        self,
        equipment_id: str,
        group: list[TelemetryRecord],
        now: datetime,
        report: ProcessingReport,
    ) -> None:
        """Fold one equipment's events; failures stay local to the group"""
        try:
            line_item = self.db.find_active_line_item(equipment_id, now)
            if line_item is None:
                # Left unprocessed: a line may become active later
                logger.debug(
                    "No active line item, skipping",
                    equipment_id=equipment_id,
                    events=len(group),
                )
                report.groups_skipped += 1
                return

            folded: dict[str, int] = {}

            def fold(current: UsageStatistics, claimed: set[str]) -> UsageStatistics:
                batch = [event for event in group if event.id in claimed]
                delta = compute_batch_delta(batch, self.config)
                folded["records"] = len(batch)
                folded["malformed"] = delta.malformed_records
                return merge(current, delta, line_item.line_item_id)

            updated = self.db.commit_batch(
                line_item.line_item_id, [event.id for event in group], fold
            )

        except Exception as e:
            logger.error(
                "Failed to process equipment group",
                equipment_id=equipment_id,
                events=len(group),
                error=str(e),
                exc_info=True,
            )
            report.groups_failed += 1
            return

        if updated is None:
            logger.warning(
                "Events already claimed by another run",
                equipment_id=equipment_id,
                events=len(group),
            )
            report.records_already_claimed += len(group)
            return

        report.groups_processed += 1
        report.records_processed += folded["records"]
        report.records_already_claimed += len(group) - folded["records"]
        report.malformed_records += folded["malformed"]

        if folded["malformed"]:
            logger.warning(
                "Malformed events excluded from usage",
                equipment_id=equipment_id,
                malformed=folded["malformed"],
            )

        logger.info(
            "Processed events for line item",
            line_item_id=line_item.line_item_id,
            equipment_id=equipment_id,
            events=folded["records"],
            total_engine_hours=round(updated.total_engine_hours, 2),
            version=updated.version,
        )
