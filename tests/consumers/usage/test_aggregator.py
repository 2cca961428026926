"""
Tests for the usage aggregation job.
"""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from src.consumers.usage.aggregator import UsageAggregator
from src.telemetry.models import (
    ContractLine,
    EngineState,
    EngineStatus,
    EventType,
    FuelLevel,
    PayloadCycle,
    TelemetryRecord,
    UsageStatistics,
)
from tests.fakes import FakeTelemetryStore, make_event


def _running(equipment_id, at, state=EngineState.RUNNING):
    return make_event(equipment_id, EventType.ENGINE_STATUS, EngineStatus(state, 1500), at)


def _cycle(tonnes, seconds):
    return {"payloadTonnes": tonnes, "cycleTimeSeconds": seconds}


@pytest.fixture
def seeded_store(store, active_line, now):
    """Store with one active line and three unprocessed samples for EQ-1."""
    store.add_line_item(active_line)
    store.add_events(
        _running("EQ-1", now - timedelta(minutes=18)),
        _running("EQ-1", now - timedelta(minutes=12)),
        _running("EQ-1", now - timedelta(minutes=6), EngineState.IDLE),
    )
    return store


class TestInitialization:
    """Tests for aggregator construction."""

    def test_unhealthy_store_rejected(self, usage_config):
        """Test the job refuses to start against an unhealthy database."""
        db = MagicMock()
        db.check_health.return_value = False

        with pytest.raises(RuntimeError, match="Database health check failed"):
            UsageAggregator(usage_config, db=db)


class TestRun:
    """Tests for UsageAggregator.run."""

    def test_no_events(self, usage_config, store, now):
        """Test an empty backlog is a no-op."""
        report = UsageAggregator(usage_config, db=store).run(now)

        assert report.groups_processed == 0
        assert store.usage == {}

    def test_folds_events_into_line(self, usage_config, seeded_store, now):
        """Test a group of samples becomes usage on its active line."""
        report = UsageAggregator(usage_config, db=seeded_store).run(now)

        stats = seeded_store.usage["LI-1"]
        assert stats.total_engine_hours == pytest.approx(0.3)
        assert stats.total_idle_hours == pytest.approx(0.1)
        assert stats.working_hours == pytest.approx(0.2)
        assert stats.fuel_consumed == pytest.approx(0.3 * 5.5)
        assert stats.version == 1
        assert report.groups_processed == 1
        assert report.records_processed == 3
        assert all(seeded_store.is_processed(event_id) for event_id in seeded_store.events)

    def test_second_run_changes_nothing(self, usage_config, seeded_store, now):
        """Test re-running without new events leaves the statistics untouched."""
        aggregator = UsageAggregator(usage_config, db=seeded_store)
        aggregator.run(now)
        before = seeded_store.usage["LI-1"]

        report = aggregator.run(now)

        assert seeded_store.usage["LI-1"] == before
        assert report.records_processed == 0

    def test_new_events_add_to_existing_totals(self, usage_config, seeded_store, now):
        """Test a later run increments the stored statistics."""
        aggregator = UsageAggregator(usage_config, db=seeded_store)
        aggregator.run(now)
        seeded_store.add_events(_running("EQ-1", now))

        aggregator.run(now)

        stats = seeded_store.usage["LI-1"]
        assert stats.total_engine_hours == pytest.approx(0.4)
        assert stats.version == 2

    def test_equipment_without_active_line_is_left_unprocessed(
        self, usage_config, seeded_store, now
    ):
        """Test events of unassigned equipment are skipped and kept for later."""
        orphan = _running("EQ-9", now)
        seeded_store.add_events(orphan)

        report = UsageAggregator(usage_config, db=seeded_store).run(now)

        assert report.groups_skipped == 1
        assert not seeded_store.is_processed(orphan.id)
        assert set(seeded_store.usage) == {"LI-1"}

    def test_expired_line_is_not_billed(self, usage_config, store, now):
        """Test a line whose window ended does not receive usage."""
        store.add_line_item(
            ContractLine(
                "LI-OLD", "EQ-1", "C-0", now - timedelta(days=60), now - timedelta(days=1)
            )
        )
        store.add_events(_running("EQ-1", now))

        report = UsageAggregator(usage_config, db=store).run(now)

        assert report.groups_skipped == 1
        assert store.usage == {}

    def test_failing_group_is_isolated(self, usage_config, seeded_store, now):
        """Test one group's store failure neither aborts the run nor marks its events."""
        seeded_store.add_line_item(
            ContractLine(
                "LI-2", "EQ-2", "C-2", now - timedelta(days=1), now + timedelta(days=1)
            )
        )
        broken = _running("EQ-2", now)
        seeded_store.add_events(broken)
        seeded_store.failing_lines.add("LI-2")

        report = UsageAggregator(usage_config, db=seeded_store).run(now)

        assert report.groups_failed == 1
        assert report.groups_processed == 1
        assert not seeded_store.is_processed(broken.id)
        assert "LI-2" not in seeded_store.usage
        assert seeded_store.usage["LI-1"].version == 1

    def test_lookup_failure_is_isolated(self, usage_config, seeded_store, now):
        """Test a failed line lookup counts as a failed group."""
        seeded_store.add_events(_running("EQ-3", now))
        seeded_store.failing_equipment.add("EQ-3")

        report = UsageAggregator(usage_config, db=seeded_store).run(now)

        assert report.groups_failed == 1
        assert report.groups_processed == 1

    def test_malformed_events_are_consumed(self, usage_config, seeded_store, now):
        """Test malformed events are marked processed and reported, not folded."""
        bad = make_event("EQ-1", EventType.ENGINE_STATUS, None, now)
        seeded_store.add_events(bad)

        report = UsageAggregator(usage_config, db=seeded_store).run(now)

        assert seeded_store.is_processed(bad.id)
        assert report.malformed_records == 1
        assert seeded_store.usage["LI-1"].total_engine_hours == pytest.approx(0.3)

    def test_counters_and_cycles(self, usage_config, store, active_line, now):
        """Test non-time events feed the cycle totals and event counters."""
        store.add_line_item(active_line)
        store.add_events(
            make_event("EQ-1", EventType.PAYLOAD_CYCLE, PayloadCycle(22.0, 120.0), now),
            make_event("EQ-1", EventType.FUEL_LEVEL, FuelLevel(300.0), now - timedelta(minutes=6)),
            make_event("EQ-1", EventType.FUEL_LEVEL, FuelLevel(260.0), now),
        )

        UsageAggregator(usage_config, db=store).run(now)

        stats = store.usage["LI-1"]
        assert stats.cycle_count == 1
        assert stats.avg_cycle_time_seconds == pytest.approx(120.0)
        assert stats.sudden_fuel_drops == 1

    def test_existing_statistics_are_extended(self, usage_config, seeded_store, now):
        """Test stored totals from earlier runs are the base of the merge."""
        seeded_store.usage["LI-1"] = UsageStatistics(
            line_item_id="LI-1", total_engine_hours=100.0, total_idle_hours=10.0, version=41
        )

        UsageAggregator(usage_config, db=seeded_store).run(now)

        stats = seeded_store.usage["LI-1"]
        assert stats.total_engine_hours == pytest.approx(100.3)
        assert stats.working_hours == pytest.approx(90.2)
        assert stats.version == 42


class TestStoredRows:
    """Tests for runs over records parsed from raw_event_log rows."""

    def _row(self, event_id, equipment_id, event_type, value, at):
        return TelemetryRecord.from_row(
            {
                "id": event_id,
                "timestamp": at,
                "equipment_id": equipment_id,
                "event_type": event_type,
                "value": value,
            }
        )

    def test_undecodable_text_does_not_stop_other_groups(
        self, usage_config, store, active_line, now
    ):
        """Test a plain text value is consumed while other equipment is folded."""
        store.add_line_item(active_line)
        store.add_line_item(
            ContractLine("LI-2", "EQ-2", "C-2", now - timedelta(days=1), now + timedelta(days=1))
        )
        store.add_events(
            self._row("bad", "EQ-1", "FUEL_LEVEL", "sensor offline", now),
            self._row("ok", "EQ-2", "PAYLOAD_CYCLE", _cycle(18, 90), now),
        )

        report = UsageAggregator(usage_config, db=store).run(now)

        assert report.groups_failed == 0
        assert report.malformed_records == 1
        assert store.is_processed("bad")
        assert store.is_processed("ok")
        assert store.usage["LI-2"].payload_moved_tonnes == pytest.approx(18.0)

        assert UsageAggregator(usage_config, db=store).run(now).groups_processed == 0

    def test_non_finite_cycle_is_not_folded(self, usage_config, store, active_line, now):
        """Test NaN and infinite readings leave the cycle averages intact."""
        store.add_line_item(active_line)
        store.add_events(
            self._row("c1", "EQ-1", "PAYLOAD_CYCLE", _cycle(20, 100), now),
            self._row("c2", "EQ-1", "PAYLOAD_CYCLE", _cycle(10, "NaN"), now),
            self._row("c3", "EQ-1", "PAYLOAD_CYCLE", _cycle("inf", 50), now),
        )

        report = UsageAggregator(usage_config, db=store).run(now)

        stats = store.usage["LI-1"]
        assert report.malformed_records == 2
        assert stats.cycle_count == 1
        assert stats.payload_moved_tonnes == pytest.approx(20.0)
        assert stats.avg_cycle_time_seconds == pytest.approx(100.0)


class TestConcurrentRuns:
    """Tests for overlapping aggregation runs."""

    def test_overlapping_runs_fold_each_event_once(self, usage_config, active_line, now):
        """Test two runs reading the same backlog never double count it."""
        store = FakeTelemetryStore(fetch_delay=0.05, commit_delay=0.01)
        store.add_line_item(active_line)
        store.add_events(*[_running("EQ-1", now - timedelta(minutes=6 * i)) for i in range(10)])

        reports = []

        def run():
            reports.append(UsageAggregator(usage_config, db=store).run(now))

        threads = [threading.Thread(target=run) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = store.usage["LI-1"]
        assert stats.total_engine_hours == pytest.approx(1.0)
        assert stats.version == 1
        assert sum(r.records_processed for r in reports) == 10
