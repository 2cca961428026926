"""
Base abstract interface for anomaly rules.

A rule is a stateless predicate over the cumulative statistics of a contract
line and the recent events of its equipment. It never touches the store:
persistence and deduplication belong to the detector.
"""

from abc import ABC, abstractmethod

from src.telemetry.models import TelemetryRecord, UsageStatistics

from ..models import AnomalyCandidate, AnomalyConfig, AnomalyType, RuleContext


class AnomalyRule(ABC):
    """Abstract base class for all anomaly rules"""

    def __init__(self, config: AnomalyConfig):
        self.config = config

    @property
    @abstractmethod
    def anomaly_type(self) -> AnomalyType:
        """Type of anomaly this rule reports"""
        pass

    @abstractmethod
    def evaluate(
        self,
        stats: UsageStatistics,
        window: list[TelemetryRecord],
        context: RuleContext,
    ) -> AnomalyCandidate | None:
        """Check the rule for one contract line

        Args:
            stats: Current usage statistics of the line
            window: Recent events of the line's equipment, oldest first
            context: Contract line, resolved geofence and evaluation time

        Returns:
            An AnomalyCandidate if the rule fired, None otherwise
        """
        pass

    @property
    def name(self) -> str:
        return self.anomaly_type.value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
