"""
Batch consumers of equipment telemetry.
"""

# Usage aggregation (raw events → line_item_usage)
from .usage import UsageAggregator, UsageConfig

# Anomaly detection (line_item_usage + recent events → anomaly_log)
from .anomaly import AnomalyConfig, AnomalyDetector

__all__ = ["UsageAggregator", "UsageConfig", "AnomalyDetector", "AnomalyConfig"]
