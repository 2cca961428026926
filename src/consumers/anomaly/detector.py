"""
Batch anomaly detector.

Evaluates the rule catalog for every active contract line that has usage
statistics and records new anomalies, never more than one open per type.
"""

import time
from datetime import UTC, datetime, timedelta

import structlog

from src.telemetry.models import ContractLine, UsageStatistics

from .database import AnomalyDatabase
from .models import AnomalyCandidate, AnomalyConfig, AnomalyRecord, DetectionReport, RuleContext
from .rules import build_rules

logger = structlog.get_logger(__name__)


class AnomalyDetector:
    """Runs the rule catalog against usage statistics and recent telemetry"""

    def __init__(self, config: AnomalyConfig, db: AnomalyDatabase | None = None):
        self.config = config

        self.db = db if db is not None else AnomalyDatabase(config)
        if not self.db.check_health():
            raise RuntimeError("Database health check failed")

        self.rules = build_rules(config)

        logger.info(
            "Detector initialized",
            rules=[rule.name for rule in self.rules],
            lookback_minutes=config.lookback_minutes,
        )

    def run(self, now: datetime | None = None) -> DetectionReport:
        """Evaluate every active contract line once

        Args:
            now: Reference instant for line activity and the event window
                (default: current UTC time)

        Returns:
            DetectionReport with counters for the run
        """
        now = now or datetime.now(UTC)
        report = DetectionReport()
        start_time = time.time()

        lines = self.db.fetch_active_line_items_with_usage(now)
        logger.info("Starting anomaly detection", line_items=len(lines))

        for line_item, stats in lines:
            try:
                self._evaluate_line(line_item, stats, now, report)
                report.lines_evaluated += 1
            except Exception as e:
                logger.error(
                    "Failed to evaluate line item",
                    line_item_id=line_item.line_item_id,
                    error=str(e),
                    exc_info=True,
                )
                report.lines_failed += 1

        logger.info(
            "Anomaly detection completed",
            **report.to_dict(),
            elapsed_sec=round(time.time() - start_time, 2),
        )
        return report

    def evaluate(
        self, line_item: ContractLine, stats: UsageStatistics, now: datetime
    ) -> list[AnomalyCandidate]:
        """Run every rule for one line and collect the candidates, without persisting"""
        since = now - timedelta(minutes=self.config.lookback_minutes)
        window = self.db.fetch_recent_events(line_item.equipment_id, since, now)

        context = RuleContext(
            line_item=line_item,
            geofence=line_item.geofence or self.config.default_geofence,
            now=now,
        )

        candidates = []
        for rule in self.rules:
            candidate = rule.evaluate(stats, window, context)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _evaluate_line(
        self,
        line_item: ContractLine,
        stats: UsageStatistics,
        now: datetime,
        report: DetectionReport,
    ) -> None:
        candidates = self.evaluate(line_item, stats, now)
        report.candidates_found += len(candidates)

        created = 0
        for candidate in candidates:
            anomaly = AnomalyRecord.from_candidate(line_item.line_item_id, candidate, now)

            if self.db.insert_anomaly_if_absent(anomaly):
                created += 1
                report.anomalies_created += 1
                logger.info(
                    "Anomaly detected",
                    line_item_id=line_item.line_item_id,
                    anomaly_type=candidate.anomaly_type.value,
                    severity=candidate.severity.value,
                    details=candidate.details,
                )
            else:
                report.duplicates_suppressed += 1

        if created:
            logger.debug(
                "Anomalies created for line item",
                line_item_id=line_item.line_item_id,
                created=created,
            )
