"""
Tests for the simulator CLI.
"""

from unittest.mock import patch

from src.generator import CHAOS_CONFIG
from src.generator.generate import build_config_from_args, main, parse_arguments
from src.generator.models import FaultType


class TestBuildConfig:
    """Tests for build_config_from_args."""

    def test_preset_is_copied(self):
        """Test overriding a preset leaves the shared preset untouched."""
        config = build_config_from_args(parse_arguments(["--config", "chaos", "--interval", "0.5"]))

        assert config.event_interval_seconds == 0.5
        assert config.events_per_tick == CHAOS_CONFIG.events_per_tick
        assert CHAOS_CONFIG.event_interval_seconds == 1.0

    def test_fault_selection(self):
        config = build_config_from_args(
            parse_arguments(["--faults", "fuel_theft", "overheat", "--fault-prob", "0.2"])
        )

        assert config.enabled_faults == [FaultType.FUEL_THEFT, FaultType.OVERHEAT]
        assert config.fault_probability == 0.2


class TestMain:
    """Tests for the simulator entry point."""

    @patch("src.generator.generate.TelemetryGenerator")
    def test_backfill(self, mock_generator_class):
        generator = mock_generator_class.return_value

        assert main(["--backfill", "--backfill-hours", "6"]) == 0

        generator.run_backfill.assert_called_once_with(6, 360)
        generator.db.close.assert_called_once()

    @patch("src.generator.generate.TelemetryGenerator")
    def test_realtime(self, mock_generator_class):
        assert main(["--duration", "30"]) == 0

        mock_generator_class.return_value.run.assert_called_once_with(duration_seconds=30)

    @patch("src.generator.generate.TelemetryGenerator")
    def test_failure_exit_code(self, mock_generator_class):
        mock_generator_class.side_effect = RuntimeError("Database health check failed")

        assert main([]) == 1
