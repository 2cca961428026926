"""
PostgreSQL operations for the telemetry simulator.
"""

from typing import Any

import psycopg2.extras
import structlog

from src.core.database import PostgresConnection

from .models import GeneratorConfig

logger = structlog.get_logger(__name__)


class GeneratorDatabase(PostgresConnection):
    """Reads rented equipment and writes raw events"""

    def __init__(self, config: GeneratorConfig):
        super().__init__(
            host=config.postgres_host,
            port=config.postgres_port,
            database=config.postgres_database,
            user=config.postgres_user,
            password=config.postgres_password,
        )

    def discover_rented_equipment(self) -> list[str]:
        """List equipment currently out on rent"""
        query = """
            SELECT equipment_id FROM equipment
            WHERE status = 'rented'
            ORDER BY equipment_id
        """

        try:
            with self.get_cursor() as cursor:
                cursor.execute(query)
                return [row[0] for row in cursor.fetchall()]
        except Exception as e:
            logger.error("Failed to discover rented equipment", error=str(e))
            return []

    def insert_batch_events(self, events: list[dict[str, Any]]) -> int:
        """Batch insert raw events; they start unprocessed"""
        if not events:
            return 0

        query = """
            INSERT INTO raw_event_log (
                id, timestamp, equipment_id, event_type, value, is_processed
            ) VALUES (
                %(id)s, %(timestamp)s, %(equipment_id)s, %(event_type)s, %(value)s, FALSE
            )
        """
        inserted = 0
        try:
            with self.get_cursor() as cursor:
                psycopg2.extras.execute_batch(cursor, query, events, page_size=100)
                inserted = len(events)
        except Exception as e:
            logger.error("Failed to batch insert raw events", count=len(events), error=str(e))
        return inserted
