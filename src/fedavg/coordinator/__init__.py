"""
Federated averaging coordinator: round state machine, aggregation and metrics.
"""

from .aggregator import Aggregator, weighted_average
from .metrics import MetricsCollector, RoundMetrics
from .round_manager import CoordinatorState, RoundManager, RoundRecord
from .service import Coordinator

__all__ = [
    "Aggregator",
    "Coordinator",
    "CoordinatorState",
    "MetricsCollector",
    "RoundManager",
    "RoundMetrics",
    "RoundRecord",
    "weighted_average",
]
