"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.consumers.anomaly.models import AnomalyConfig
from src.consumers.usage.models import UsageConfig
from src.generator.models import FaultType, GeneratorConfig
from src.telemetry.models import ContractLine, SiteGeofence
from tests.fakes import FakeTelemetryStore


# Clock fixtures
@pytest.fixture
def now():
    """Fixed reference instant: 10:00 UTC is 15:30 in Vellore, inside working hours."""
    return datetime(2025, 9, 1, 10, 0, tzinfo=UTC)


# Store fixtures
@pytest.fixture
def store():
    """Empty in-memory telemetry store."""
    return FakeTelemetryStore()


@pytest.fixture
def vellore_geofence():
    """5 km geofence around the Vellore site."""
    return SiteGeofence(center_lat=12.9716, center_long=79.1588, radius_km=5.0)


@pytest.fixture
def active_line(now, vellore_geofence):
    """Contract line of equipment EQ-1, active around ``now``."""
    return ContractLine(
        line_item_id="LI-1",
        equipment_id="EQ-1",
        contract_id="C-1",
        start_date=now - timedelta(days=30),
        end_date=now + timedelta(days=30),
        site_id="SITE-VELLORE",
        geofence=vellore_geofence,
    )


# Job fixtures
@pytest.fixture
def usage_config():
    """Usage aggregation configuration for testing."""
    return UsageConfig(
        postgres_host="localhost",
        postgres_port=5432,
        postgres_database="test_db",
        postgres_user="test_user",
        postgres_password="test_password",
    )


@pytest.fixture
def anomaly_config():
    """Anomaly detection configuration for testing."""
    return AnomalyConfig(
        postgres_host="localhost",
        postgres_port=5432,
        postgres_database="test_db",
        postgres_user="test_user",
        postgres_password="test_password",
    )


# Generator fixtures
@pytest.fixture
def generator_config():
    """Basic generator configuration for testing."""
    return GeneratorConfig(
        postgres_database="test_db",
        event_interval_seconds=0.1,
        fault_probability=0.0,  # No faults for predictable tests
    )


@pytest.fixture
def all_fault_types():
    """List of all fault types."""
    return list(FaultType)
