"""
Table definitions for the telemetry store.

Only the columns read or written by the batch jobs are declared here; the
business tables (equipment, contracts, line items) are owned by the
contract management side and created here solely for local runs and tests.
"""

import structlog

from .database import PostgresConnection

logger = structlog.get_logger(__name__)

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS equipment (
        equipment_id TEXT PRIMARY KEY,
        status TEXT NOT NULL DEFAULT 'available'
    );

    CREATE TABLE IF NOT EXISTS site_geofence (
        site_id TEXT PRIMARY KEY,
        center_lat DOUBLE PRECISION NOT NULL,
        center_long DOUBLE PRECISION NOT NULL,
        radius_km DOUBLE PRECISION NOT NULL CHECK (radius_km > 0)
    );

    CREATE TABLE IF NOT EXISTS contract (
        contract_id TEXT PRIMARY KEY,
        site_id TEXT NOT NULL,
        start_date TIMESTAMPTZ NOT NULL,
        end_date TIMESTAMPTZ NOT NULL
    );

    CREATE TABLE IF NOT EXISTS line_item (
        line_item_id TEXT PRIMARY KEY,
        contract_id TEXT NOT NULL REFERENCES contract(contract_id),
        equipment_id TEXT NOT NULL REFERENCES equipment(equipment_id),
        start_date TIMESTAMPTZ,
        end_date TIMESTAMPTZ
    );

    CREATE INDEX IF NOT EXISTS idx_line_item_equipment_window
    ON line_item(equipment_id, start_date, end_date);

    CREATE TABLE IF NOT EXISTS raw_event_log (
        id TEXT PRIMARY KEY,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        equipment_id TEXT NOT NULL REFERENCES equipment(equipment_id),
        event_type TEXT NOT NULL CHECK (event_type IN (
            'ENGINE_STATUS', 'FUEL_LEVEL', 'LOCATION_UPDATE', 'ENGINE_TEMP',
            'DIAGNOSTIC_CODE', 'PAYLOAD_CYCLE', 'HYDRAULIC_PRESSURE'
        )),
        value JSONB NOT NULL,
        is_processed BOOLEAN NOT NULL DEFAULT FALSE
    );

    CREATE INDEX IF NOT EXISTS idx_raw_event_log_unprocessed
    ON raw_event_log(is_processed) WHERE is_processed = FALSE;

    CREATE INDEX IF NOT EXISTS idx_raw_event_log_equipment_time
    ON raw_event_log(equipment_id, timestamp);

    CREATE TABLE IF NOT EXISTS line_item_usage (
        id TEXT PRIMARY KEY,
        line_item_id TEXT NOT NULL UNIQUE REFERENCES line_item(line_item_id),
        total_engine_hours DOUBLE PRECISION NOT NULL DEFAULT 0,
        total_idle_hours DOUBLE PRECISION NOT NULL DEFAULT 0,
        fuel_consumed DOUBLE PRECISION NOT NULL DEFAULT 0,
        payload_moved_tonnes DOUBLE PRECISION NOT NULL DEFAULT 0,
        total_cycle_time_seconds DOUBLE PRECISION NOT NULL DEFAULT 0,
        cycle_count INTEGER NOT NULL DEFAULT 0,
        high_engine_temp_alerts INTEGER NOT NULL DEFAULT 0,
        sudden_fuel_drops INTEGER NOT NULL DEFAULT 0,
        diagnostic_errors INTEGER NOT NULL DEFAULT 0,
        working_hours DOUBLE PRECISION NOT NULL DEFAULT 0,
        working_to_idle_ratio DOUBLE PRECISION NOT NULL DEFAULT 0,
        fuel_burn_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
        avg_cycle_time_seconds DOUBLE PRECISION NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS anomaly_log (
        id TEXT PRIMARY KEY,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        line_item_id TEXT NOT NULL REFERENCES line_item(line_item_id),
        anomaly_type TEXT NOT NULL,
        severity TEXT NOT NULL CHECK (severity IN ('LOW', 'MEDIUM', 'HIGH')),
        status TEXT NOT NULL DEFAULT 'UNRESOLVED' CHECK (status IN ('UNRESOLVED', 'RESOLVED')),
        details JSONB NOT NULL
    );

    -- At most one open anomaly per (line item, type)
    CREATE UNIQUE INDEX IF NOT EXISTS uq_anomaly_log_open
    ON anomaly_log(line_item_id, anomaly_type) WHERE status = 'UNRESOLVED';
"""


def ensure_schema(db: PostgresConnection) -> None:
    """Create the telemetry tables and indexes if they don't exist"""
    try:
        with db.get_cursor() as cursor:
            cursor.execute(SCHEMA_SQL)
            logger.info("Ensured telemetry schema exists", database=db.database)
    except Exception as e:
        logger.error("Failed to create telemetry schema", error=str(e))
        raise
