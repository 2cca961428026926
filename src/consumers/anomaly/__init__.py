"""
Anomaly Detection System

Rule-based detection of operational anomalies for rented equipment.

Architecture:
- Usage rules: evaluated on cumulative per-contract-line statistics
- Window rules: evaluated on the last hour (configurable) of raw telemetry
- Idempotent persistence: at most one open anomaly per (line item, type)

Usage:
    # Run detection once
    python -m src.consumers.anomaly.detect
"""

from .detector import AnomalyDetector
from .models import (
    AnomalyCandidate,
    AnomalyConfig,
    AnomalyRecord,
    AnomalyStatus,
    AnomalyType,
    DetectionReport,
    RuleContext,
)

__all__ = [
    "AnomalyCandidate",
    "AnomalyConfig",
    "AnomalyDetector",
    "AnomalyRecord",
    "AnomalyStatus",
    "AnomalyType",
    "DetectionReport",
    "RuleContext",
]
