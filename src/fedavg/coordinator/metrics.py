"""
Federation Metrics

Per-round and federation-wide statistics, gathered from telemetry events.

MetricsCollector is a TelemetryObserver: the coordinator and the clients
publish to it, it never reaches into them. With a metrics directory it also
writes ``round_<id>.json`` and appends a readable block to ``rounds.log``
whenever a round ends.
"""

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ..telemetry import TelemetryObserver
from ..utils.logger import get_logger, log_event


logger = get_logger("coordinator", __name__)


@dataclass
class RoundMetrics:
    """
    Statistics of one round. Times are scheduler clock readings.

    Attributes:
        updates_received: LocalUpdates that arrived tagged with this round.
        updates_accepted: Of those, the ones recorded for aggregation.
        updates_rejected: Of those, the ones discarded (stale, unknown, malformed).
        rejection_reasons: Rejection count per reason.
        accuracies: Accuracy reported by each client this round.
    """
    round_id: int
    started_at: float
    ended_at: Optional[float] = None

    updates_received: int = 0
    updates_accepted: int = 0
    updates_rejected: int = 0
    rejection_reasons: Dict[str, int] = field(default_factory=dict)

    aggregation_started_at: Optional[float] = None
    aggregation_finished_at: Optional[float] = None
    aggregated: bool = False
    aggregation_skipped_reason: Optional[str] = None
    num_contributors: int = 0
    total_samples: int = 0

    accuracies: Dict[int, float] = field(default_factory=dict)

    @property
    def round_duration_seconds(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    @property
    def aggregation_time_seconds(self) -> Optional[float]:
        if self.aggregation_started_at is None or self.aggregation_finished_at is None:
            return None
        return self.aggregation_finished_at - self.aggregation_started_at

    @property
    def mean_accuracy(self) -> Optional[float]:
        if not self.accuracies:
            return None
        return sum(self.accuracies.values()) / len(self.accuracies)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view, derived values included and client ids as strings."""
        data = asdict(self)
        data["accuracies"] = {str(client_id): acc for client_id, acc in self.accuracies.items()}
        data["round_duration_seconds"] = self.round_duration_seconds
        data["aggregation_time_seconds"] = self.aggregation_time_seconds
        data["mean_accuracy"] = self.mean_accuracy
        return data

    def summary_lines(self) -> List[str]:
        """Readable summary used for rounds.log."""
        lines = [
            f"Round {self.round_id}",
            f"  Updates: {self.updates_received} received, "
            f"{self.updates_accepted} accepted, {self.updates_rejected} rejected",
        ]
        for reason, count in sorted(self.rejection_reasons.items()):
            lines.append(f"    rejected ({reason}): {count}")

        if self.aggregated:
            lines.append(f"  Aggregated: {self.num_contributors} clients, "
                         f"{self.total_samples} samples")
        elif self.aggregation_skipped_reason:
            lines.append(f"  Aggregation skipped: {self.aggregation_skipped_reason}")
        else:
            lines.append("  Aggregation: not reached before the round ended")

        if self.mean_accuracy is not None:
            lines.append(f"  Mean reported accuracy: {self.mean_accuracy:.4f}")
        if self.round_duration_seconds is not None:
            lines.append(f"  Duration: {self.round_duration_seconds:.2f}s")
        return lines


class MetricsCollector(TelemetryObserver):
    """
    Observer that keeps a RoundMetrics per round plus federation totals.

    Events for rounds that were never started (for example stale updates
    tagged with round 0) only count towards the totals.
    """

    def __init__(self, metrics_dir: Optional[str] = None):
        """
        Args:
            metrics_dir: Directory for per-round JSON and rounds.log (memory only if None)
        """
        self.metrics_dir = Path(metrics_dir) if metrics_dir else None
        if self.metrics_dir is not None:
            self.metrics_dir.mkdir(parents=True, exist_ok=True)

        self.round_metrics: Dict[int, RoundMetrics] = {}
        self.current_round_id: Optional[int] = None

        self.total_clients_seen: Set[int] = set()
        self.total_failed_updates = 0
        self.rejection_reasons: Counter = Counter()
        self.rounds_completed: Optional[int] = None
        self.client_accuracy: Dict[int, List[float]] = {}

    def _round(self, round_id: Optional[int]) -> Optional[RoundMetrics]:
        return self.round_metrics.get(round_id) if round_id is not None else None

    # Telemetry hooks

    def on_round_started(self, round_id, time):
        self.current_round_id = round_id
        self.round_metrics[round_id] = RoundMetrics(round_id=round_id, started_at=time)

    def on_update_received(self, round_id, client_id, time):
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.updates_received += 1

    def on_update_accepted(self, round_id, client_id, sample_count, time):
        self.total_clients_seen.add(client_id)
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.updates_accepted += 1

    def on_update_rejected(self, round_id, client_id, reason, time):
        self.total_failed_updates += 1
        self.rejection_reasons[reason] += 1
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.updates_rejected += 1
            metrics.rejection_reasons[reason] = metrics.rejection_reasons.get(reason, 0) + 1

    def on_model_accuracy(self, round_id, client_id, accuracy, time):
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.accuracies[client_id] = accuracy

    def on_aggregation_started(self, round_id, time):
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.aggregation_started_at = time

    def on_round_aggregated(self, round_id, num_updates, total_samples, time):
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.aggregation_finished_at = time
            metrics.aggregated = True
            metrics.num_contributors = num_updates
            metrics.total_samples = total_samples

    def on_aggregation_skipped(self, round_id, reason, time):
        metrics = self._round(round_id)
        if metrics is not None:
            metrics.aggregation_finished_at = time
            metrics.aggregation_skipped_reason = reason

    def on_round_ended(self, round_id, time):
        metrics = self._round(round_id)
        if metrics is None:
            return
        metrics.ended_at = time
        if self.metrics_dir is not None:
            self._write_round_file(metrics)
            self._append_rounds_log(metrics)

    def on_federation_completed(self, rounds_completed, time):
        self.rounds_completed = rounds_completed

    def on_training_completed(self, client_id, round_id, accuracy, time):
        self.client_accuracy.setdefault(client_id, []).append(accuracy)

    # Persistence

    def _round_file(self, round_id: int) -> Path:
        return self.metrics_dir / f"round_{round_id}.json"

    def _write_round_file(self, metrics: RoundMetrics) -> None:
        try:
            with open(self._round_file(metrics.round_id), "w") as f:
                json.dump(metrics.to_dict(), f, indent=2)
        except OSError as e:
            log_event(logger, "metrics_persist_failed", level="WARNING",
                      round_id=metrics.round_id, error=str(e))

    def _append_rounds_log(self, metrics: RoundMetrics) -> None:
        written_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        try:
            with open(self.metrics_dir / "rounds.log", "a") as f:
                f.write(f"[{written_at}] ")
                f.write("\n".join(metrics.summary_lines()))
                f.write("\n\n")
        except OSError as e:
            log_event(logger, "metrics_summary_failed", level="WARNING",
                      round_id=metrics.round_id, error=str(e))

    # Queries

    def get_round_metrics(self, round_id: int) -> Optional[Dict[str, Any]]:
        """
        Metrics of one round, from memory or from a persisted round file.

        Returns:
            Round metrics as a dict, or None if the round is unknown
        """
        metrics = self._round(round_id)
        if metrics is not None:
            return metrics.to_dict()

        if self.metrics_dir is not None and self._round_file(round_id).exists():
            with open(self._round_file(round_id)) as f:
                return json.load(f)
        return None

    def get_latest_round_metrics(self) -> Optional[Dict[str, Any]]:
        if not self.round_metrics:
            return None
        return self.get_round_metrics(max(self.round_metrics))

    def get_all_metrics(self) -> Dict[str, Any]:
        """
        Federation totals plus every round held in memory.

        Returns:
            {"global": {...}, "rounds": {round_id: {...}}}
        """
        return {
            "global": {
                "total_clients_seen": len(self.total_clients_seen),
                "total_failed_updates": self.total_failed_updates,
                "total_rounds": len(self.round_metrics),
                "rounds_completed": self.rounds_completed,
                "rounds_aggregated": sum(m.aggregated for m in self.round_metrics.values()),
            },
            "rounds": {
                round_id: metrics.to_dict()
                for round_id, metrics in self.round_metrics.items()
            },
        }
