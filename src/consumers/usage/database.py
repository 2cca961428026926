"""
PostgreSQL operations for the usage aggregator.

Handles:
- Reading unprocessed raw events
- Resolving the active contract line of an equipment unit
- Folding a group of events into line_item_usage in one transaction
"""

import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

import structlog

from src.core.database import PostgresConnection
from src.telemetry.models import ContractLine, TelemetryRecord, UsageStatistics

from .models import UsageConfig

logger = structlog.get_logger(__name__)

# Receives the locked current statistics and the ids this transaction claimed
FoldFunction = Callable[[UsageStatistics, set[str]], UsageStatistics]


class UsageDatabase(PostgresConnection):
    """Database operations for usage aggregation"""

    def __init__(self, config: UsageConfig):
        super().__init__(
            host=config.postgres_host,
            port=config.postgres_port,
            database=config.postgres_database,
            user=config.postgres_user,
            password=config.postgres_password,
            statement_timeout_ms=config.statement_timeout_ms,
        )
        self.config = config

    def fetch_unprocessed_events(self) -> list[TelemetryRecord]:
        """Fetch every raw event not yet folded into usage statistics

        Returns:
            Events ordered by equipment and timestamp
        """
        query = """
            SELECT id, timestamp, equipment_id, event_type, value, is_processed
            FROM raw_event_log
            WHERE is_processed = FALSE
            ORDER BY equipment_id, timestamp
        """

        with self.get_cursor() as cursor:
            cursor.execute(query)
            events = [TelemetryRecord.from_row(row) for row in self.rows_as_dicts(cursor)]

        logger.debug("Fetched unprocessed events", count=len(events))
        return events

    def find_active_line_item(self, equipment_id: str, now: datetime) -> ContractLine | None:
        """Find the contract line whose validity window contains ``now``

        Args:
            equipment_id: Equipment the events belong to
            now: Reference instant of the current run

        Returns:
            The most recently started active line, or None
        """
        query = """
            SELECT li.line_item_id, li.equipment_id, li.contract_id,
                   li.start_date, li.end_date, c.site_id
            FROM line_item li
            JOIN contract c ON c.contract_id = li.contract_id
            WHERE li.equipment_id = %(equipment_id)s
              AND li.start_date <= %(now)s
              AND li.end_date >= %(now)s
            ORDER BY li.start_date DESC
            LIMIT 1
        """

        with self.get_cursor() as cursor:
            cursor.execute(query, {"equipment_id": equipment_id, "now": now})
            rows = self.rows_as_dicts(cursor)

        return ContractLine.from_row(rows[0]) if rows else None

    def get_usage(self, line_item_id: str) -> UsageStatistics | None:
        """Load the current statistics of a contract line"""
        query = """
            SELECT * FROM line_item_usage WHERE line_item_id = %(line_item_id)s
        """

        with self.get_cursor() as cursor:
            cursor.execute(query, {"line_item_id": line_item_id})
            rows = self.rows_as_dicts(cursor)

        return UsageStatistics.from_row(rows[0]) if rows else None

    def commit_batch(
        self, line_item_id: str, event_ids: Iterable[str], fold: FoldFunction
    ) -> UsageStatistics | None:
        """Claim events and fold them into the line's statistics atomically

        The events are flipped to processed only if still unprocessed, so a
        concurrent run can never fold the same event twice. The usage row is
        locked for the rest of the transaction, which serialises concurrent
        increments on the same contract line.

        Args:
            line_item_id: Contract line receiving the usage
            event_ids: Ids of the events of the equipment group
            fold: Builds the new statistics from (locked current, claimed ids)

        Returns:
            The written statistics, or None if every event was already claimed
        """
        claim_query = """
            UPDATE raw_event_log
            SET is_processed = TRUE
            WHERE id = ANY(%(ids)s) AND is_processed = FALSE
            RETURNING id
        """
        ensure_row_query = """
            INSERT INTO line_item_usage (id, line_item_id)
            VALUES (%(id)s, %(line_item_id)s)
            ON CONFLICT (line_item_id) DO NOTHING
        """
        lock_query = """
            SELECT * FROM line_item_usage
            WHERE line_item_id = %(line_item_id)s
            FOR UPDATE
        """
        update_query = """
            UPDATE line_item_usage SET
                total_engine_hours = %(total_engine_hours)s,
                total_idle_hours = %(total_idle_hours)s,
                fuel_consumed = %(fuel_consumed)s,
                payload_moved_tonnes = %(payload_moved_tonnes)s,
                total_cycle_time_seconds = %(total_cycle_time_seconds)s,
                cycle_count = %(cycle_count)s,
                high_engine_temp_alerts = %(high_engine_temp_alerts)s,
                sudden_fuel_drops = %(sudden_fuel_drops)s,
                diagnostic_errors = %(diagnostic_errors)s,
                working_hours = %(working_hours)s,
                working_to_idle_ratio = %(working_to_idle_ratio)s,
                fuel_burn_rate = %(fuel_burn_rate)s,
                avg_cycle_time_seconds = %(avg_cycle_time_seconds)s,
                version = %(version)s,
                updated_at = NOW()
            WHERE line_item_id = %(line_item_id)s
        """

        with self.get_cursor() as cursor:
            cursor.execute(claim_query, {"ids": list(event_ids)})
            claimed = {row[0] for row in cursor.fetchall()}
            if not claimed:
                return None

            cursor.execute(
                ensure_row_query, {"id": str(uuid.uuid4()), "line_item_id": line_item_id}
            )
            cursor.execute(lock_query, {"line_item_id": line_item_id})
            current = UsageStatistics.from_row(self.rows_as_dicts(cursor)[0])

            updated = fold(current, claimed)
            cursor.execute(update_query, updated.to_db_dict())

        logger.debug(
            "Usage batch committed",
            line_item_id=line_item_id,
            claimed=len(claimed),
            version=updated.version,
        )
        return updated
