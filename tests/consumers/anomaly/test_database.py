"""
Tests for anomaly detection database operations.
"""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from src.consumers.anomaly.database import AnomalyDatabase
from src.consumers.anomaly.models import (
    AnomalyCandidate,
    AnomalyRecord,
    AnomalyStatus,
    AnomalyType,
)
from src.telemetry.models import FuelLevel, Severity, SiteGeofence

NOW = datetime(2025, 9, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def mock_cursor():
    return MagicMock()


@pytest.fixture
def db(anomaly_config, mock_cursor):
    """AnomalyDatabase over a mocked psycopg2 connection."""
    with patch("src.core.database.psycopg2.connect") as mock_connect:
        mock_connection = MagicMock()
        mock_connection.cursor.return_value = mock_cursor
        mock_connect.return_value = mock_connection
        database = AnomalyDatabase(anomaly_config)
    return database


@pytest.fixture
def anomaly():
    candidate = AnomalyCandidate(
        anomaly_type=AnomalyType.SUDDEN_FUEL_DROP,
        severity=Severity.HIGH,
        details={"fromLevel": 80.0, "toLevel": 60.0},
    )
    return AnomalyRecord.from_candidate("LI-1", candidate, NOW)


class TestAnomalyRecord:
    """Tests for AnomalyRecord."""

    def test_from_candidate(self, anomaly):
        """Test a candidate becomes an open record stamped with the run time."""
        assert anomaly.status is AnomalyStatus.UNRESOLVED
        assert anomaly.timestamp == NOW
        assert anomaly.id

    def test_to_db_dict(self, anomaly):
        """Test enum values and JSON details are ready for the driver."""
        data = anomaly.to_db_dict()

        assert data["anomaly_type"] == "SUDDEN_FUEL_DROP"
        assert data["severity"] == "HIGH"
        assert data["status"] == "UNRESOLVED"
        assert json.loads(data["details"]) == {"fromLevel": 80.0, "toLevel": 60.0}

    def test_ids_are_unique(self, anomaly):
        other = AnomalyRecord.from_candidate(
            "LI-1",
            AnomalyCandidate(AnomalyType.HIGH_ENGINE_TEMP, Severity.HIGH, {}),
            NOW,
        )
        assert other.id != anomaly.id


class TestAnomalyDatabase:
    """Tests for AnomalyDatabase."""

    def test_fetch_active_line_items_with_usage(self, db, mock_cursor):
        """Test each row yields its line, its geofence and its statistics."""
        mock_cursor.description = [
            ("line_item_id",),
            ("equipment_id",),
            ("contract_id",),
            ("start_date",),
            ("end_date",),
            ("site_id",),
            ("center_lat",),
            ("center_long",),
            ("radius_km",),
            ("usage",),
        ]
        usage = {
            "id": "u1",
            "line_item_id": "LI-1",
            "total_engine_hours": 20.0,
            "working_to_idle_ratio": 40.0,
            "version": 9,
            "updated_at": "2025-09-01T09:55:00+00:00",
        }
        mock_cursor.fetchall.return_value = [
            (
                "LI-1",
                "EQ-1",
                "C-1",
                NOW - timedelta(days=5),
                NOW + timedelta(days=5),
                "SITE-1",
                12.9716,
                79.1588,
                5.0,
                usage,
            )
        ]

        lines = db.fetch_active_line_items_with_usage(NOW)

        assert len(lines) == 1
        line, stats = lines[0]
        assert line.geofence == SiteGeofence(12.9716, 79.1588, 5.0)
        assert stats.working_to_idle_ratio == 40.0
        assert stats.version == 9
        assert mock_cursor.execute.call_args[0][1] == {"now": NOW}

    def test_fetch_recent_events(self, db, mock_cursor):
        """Test the window query is bounded on both ends and typed."""
        mock_cursor.description = [
            ("id",),
            ("timestamp",),
            ("equipment_id",),
            ("event_type",),
            ("value",),
            ("is_processed",),
        ]
        mock_cursor.fetchall.return_value = [
            ("e1", NOW, "EQ-1", "FUEL_LEVEL", {"level": 80}, True),
        ]
        since = NOW - timedelta(minutes=60)

        events = db.fetch_recent_events("EQ-1", since, NOW)

        assert events[0].payload == FuelLevel(level=80.0)
        assert events[0].is_processed is True
        assert mock_cursor.execute.call_args[0][1] == {
            "equipment_id": "EQ-1",
            "since": since,
            "until": NOW,
        }

    def test_insert_created(self, db, mock_cursor, anomaly):
        """Test a returned id means the anomaly was created."""
        mock_cursor.fetchone.return_value = (anomaly.id,)

        assert db.insert_anomaly_if_absent(anomaly) is True

        query, params = mock_cursor.execute.call_args[0]
        assert "ON CONFLICT (line_item_id, anomaly_type) WHERE status = 'UNRESOLVED'" in query
        assert params["line_item_id"] == "LI-1"

    def test_insert_duplicate(self, db, mock_cursor, anomaly):
        """Test no returned row means an open anomaly already exists."""
        mock_cursor.fetchone.return_value = None

        assert db.insert_anomaly_if_absent(anomaly) is False
        db.connection.commit.assert_called_once()

    def test_insert_error_propagates(self, db, mock_cursor, anomaly):
        mock_cursor.execute.side_effect = Exception("relation anomaly_log does not exist")

        with pytest.raises(Exception, match="anomaly_log"):
            db.insert_anomaly_if_absent(anomaly)

    def test_count_open_anomalies(self, db, mock_cursor):
        mock_cursor.fetchone.return_value = (2,)

        assert db.count_open_anomalies("LI-1", AnomalyType.HIGH_ENGINE_TEMP) == 2

        params = mock_cursor.execute.call_args[0][1]
        assert params == {
            "line_item_id": "LI-1",
            "status": "UNRESOLVED",
            "anomaly_type": "HIGH_ENGINE_TEMP",
        }

    def test_count_all_open_anomalies(self, db, mock_cursor):
        mock_cursor.fetchone.return_value = (0,)

        assert db.count_open_anomalies("LI-1") == 0
        assert mock_cursor.execute.call_args[0][1]["anomaly_type"] is None
