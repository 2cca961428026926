"""
PostgreSQL operations for the anomaly detection job.

Handles:
- Listing active contract lines that already have usage statistics
- Querying the recent event window of an equipment unit
- Inserting anomalies, at most one open per (line item, type)
"""

from datetime import datetime

import structlog

from src.core.database import PostgresConnection
from src.telemetry.models import ContractLine, TelemetryRecord, UsageStatistics

from .models import AnomalyConfig, AnomalyRecord, AnomalyStatus, AnomalyType

logger = structlog.get_logger(__name__)


class AnomalyDatabase(PostgresConnection):
    """Database operations for anomaly detection"""

    def __init__(self, config: AnomalyConfig):
        super().__init__(
            host=config.postgres_host,
            port=config.postgres_port,
            database=config.postgres_database,
            user=config.postgres_user,
            password=config.postgres_password,
            statement_timeout_ms=config.statement_timeout_ms,
        )
        self.config = config

    def fetch_active_line_items_with_usage(
        self, now: datetime
    ) -> list[tuple[ContractLine, UsageStatistics]]:
        """Fetch active contract lines together with their usage statistics

        Lines without a line_item_usage row are not returned.

        Args:
            now: Reference instant of the current run

        Returns:
            List of (ContractLine, UsageStatistics) pairs
        """
        query = """
            SELECT li.line_item_id, li.equipment_id, li.contract_id,
                   li.start_date, li.end_date, c.site_id,
                   g.center_lat, g.center_long, g.radius_km,
                   row_to_json(u) AS usage
            FROM line_item li
            JOIN contract c ON c.contract_id = li.contract_id
            JOIN line_item_usage u ON u.line_item_id = li.line_item_id
            LEFT JOIN site_geofence g ON g.site_id = c.site_id
            WHERE li.start_date <= %(now)s
              AND li.end_date >= %(now)s
            ORDER BY li.line_item_id
        """

        with self.get_cursor() as cursor:
            cursor.execute(query, {"now": now})
            rows = self.rows_as_dicts(cursor)

        lines = [(ContractLine.from_row(row), UsageStatistics.from_row(row["usage"])) for row in rows]
        logger.debug("Fetched active line items with usage", count=len(lines))
        return lines

    def fetch_recent_events(
        self, equipment_id: str, since: datetime, until: datetime
    ) -> list[TelemetryRecord]:
        """Query the events of one equipment unit inside a time range

        Processed and unprocessed events alike are returned.

        Args:
            equipment_id: Equipment identifier
            since: Inclusive lower bound
            until: Inclusive upper bound

        Returns:
            Events ordered oldest first
        """
        query = """
            SELECT id, timestamp, equipment_id, event_type, value, is_processed
            FROM raw_event_log
            WHERE equipment_id = %(equipment_id)s
              AND timestamp >= %(since)s
              AND timestamp <= %(until)s
            ORDER BY timestamp, id
        """

        with self.get_cursor() as cursor:
            cursor.execute(query, {"equipment_id": equipment_id, "since": since, "until": until})
            events = [TelemetryRecord.from_row(row) for row in self.rows_as_dicts(cursor)]

        logger.debug("Queried recent events", equipment_id=equipment_id, count=len(events))
        return events

    def insert_anomaly_if_absent(self, anomaly: AnomalyRecord) -> bool:
        """Insert an anomaly unless one of the same type is already open for the line

        Relies on the partial unique index on (line_item_id, anomaly_type)
        WHERE status = 'UNRESOLVED', so check and insert are one statement.

        Args:
            anomaly: AnomalyRecord to insert

        Returns:
            True if a row was created, False if an open duplicate exists
        """
        query = """
            INSERT INTO anomaly_log (
                id, timestamp, line_item_id, anomaly_type,
                severity, status, details
            ) VALUES (
                %(id)s, %(timestamp)s, %(line_item_id)s, %(anomaly_type)s,
                %(severity)s, %(status)s, %(details)s
            )
            ON CONFLICT (line_item_id, anomaly_type) WHERE status = 'UNRESOLVED'
            DO NOTHING
            RETURNING id
        """

        with self.get_cursor() as cursor:
            cursor.execute(query, anomaly.to_db_dict())
            created = cursor.fetchone() is not None

        logger.debug(
            "Anomaly insert",
            line_item_id=anomaly.line_item_id,
            anomaly_type=anomaly.anomaly_type.value,
            created=created,
        )
        return created

    def count_open_anomalies(
        self, line_item_id: str, anomaly_type: AnomalyType | None = None
    ) -> int:
        """Count unresolved anomalies of a line, optionally of one type"""
        query = """
            SELECT COUNT(*) FROM anomaly_log
            WHERE line_item_id = %(line_item_id)s
              AND status = %(status)s
              AND (%(anomaly_type)s IS NULL OR anomaly_type = %(anomaly_type)s)
        """
        params = {
            "line_item_id": line_item_id,
            "status": AnomalyStatus.UNRESOLVED.value,
            "anomaly_type": anomaly_type.value if anomaly_type else None,
        }

        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchone()[0]
