"""
Tests for the anomaly detection CLI.
"""

from unittest.mock import patch

import pytest

from src.consumers.anomaly.detect import build_config, detect_scheduled, main, parse_arguments
from src.consumers.anomaly.models import AnomalyType, DetectionReport


class TestArguments:
    """Tests for argument parsing and config building."""

    def test_all_rules_by_default(self):
        config = build_config(parse_arguments([]))

        assert config.enabled_rules == list(AnomalyType)

    def test_rule_subset_and_thresholds(self):
        args = parse_arguments(
            [
                "--rules",
                "GEOFENCE_BREACH",
                "SUDDEN_FUEL_DROP",
                "--lookback-minutes",
                "120",
                "--max-fuel-drop",
                "25",
                "--site-timezone",
                "Asia/Dubai",
            ]
        )

        config = build_config(args)

        assert config.enabled_rules == [AnomalyType.GEOFENCE_BREACH, AnomalyType.SUDDEN_FUEL_DROP]
        assert config.lookback_minutes == 120
        assert config.max_fuel_drop == 25.0
        assert config.site_timezone == "Asia/Dubai"

    def test_unknown_rule_rejected(self):
        with pytest.raises(SystemExit):
            parse_arguments(["--rules", "TIRE_WEAR"])


class TestMain:
    """Tests for the CLI entry point."""

    @patch("src.consumers.anomaly.detect.AnomalyDetector")
    def test_single_run(self, mock_detector_class):
        detector = mock_detector_class.return_value
        detector.run.return_value = DetectionReport(lines_evaluated=4)

        assert main(["--json-logs"]) == 0

        detector.run.assert_called_once()
        detector.db.close.assert_called_once()

    @patch("src.consumers.anomaly.detect.AnomalyDetector")
    def test_run_failure_closes_connection(self, mock_detector_class):
        """Test the connection is closed even when the run raises."""
        detector = mock_detector_class.return_value
        detector.run.side_effect = Exception("statement timeout")

        assert main([]) == 1

        detector.db.close.assert_called_once()

    @patch("src.consumers.anomaly.detect.time.sleep")
    @patch("src.consumers.anomaly.detect.run_anomaly_detection")
    def test_scheduled(self, mock_run, mock_sleep, anomaly_config):
        mock_run.return_value = DetectionReport()
        mock_sleep.side_effect = [None, None, KeyboardInterrupt]

        with pytest.raises(KeyboardInterrupt):
            detect_scheduled(anomaly_config, interval_minutes=60)

        assert mock_run.call_count == 3
        mock_sleep.assert_called_with(3600)
