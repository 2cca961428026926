"""
Usage Aggregation

Folds raw equipment telemetry into cumulative, per-contract-line usage
statistics (engine/idle hours, fuel, payload, cycle time).

Usage:
    # Run the aggregation once
    python -m src.consumers.usage.aggregate
"""

from .accumulator import compute_batch_delta, derive_metrics, merge
from .aggregator import UsageAggregator
from .models import BatchDelta, ProcessingReport, UsageConfig

__all__ = [
    "BatchDelta",
    "ProcessingReport",
    "UsageAggregator",
    "UsageConfig",
    "compute_batch_delta",
    "derive_metrics",
    "merge",
]
