"""
Telemetry Module

Observer interface the protocol roles publish round and training events to.
Observers are passed in explicitly; there is no process-wide signal state.
"""

from typing import Iterable, List, Optional


class TelemetryObserver:
    """
    Receives protocol events.

    Every hook is a no-op by default, so observers override only what they
    need. ``time`` is the scheduler clock at the moment of the event.
    """

    def on_round_started(self, round_id: int, time: float) -> None:
        pass

    def on_update_received(self, round_id: int, client_id: int, time: float) -> None:
        pass

    def on_update_accepted(
        self, round_id: int, client_id: int, sample_count: int, time: float
    ) -> None:
        pass

    def on_update_rejected(
        self, round_id: Optional[int], client_id: Optional[int], reason: str, time: float
    ) -> None:
        pass

    def on_model_accuracy(
        self, round_id: int, client_id: int, accuracy: float, time: float
    ) -> None:
        pass

    def on_aggregation_started(self, round_id: int, time: float) -> None:
        pass

    def on_round_aggregated(
        self, round_id: int, num_updates: int, total_samples: int, time: float
    ) -> None:
        pass

    def on_aggregation_skipped(self, round_id: int, reason: str, time: float) -> None:
        pass

    def on_round_ended(self, round_id: int, time: float) -> None:
        pass

    def on_federation_completed(self, rounds_completed: int, time: float) -> None:
        pass

    def on_training_completed(
        self, client_id: int, round_id: int, accuracy: float, time: float
    ) -> None:
        pass


class CompositeObserver(TelemetryObserver):
    """Fans every event out to several observers in order."""

    def __init__(self, observers: Iterable[TelemetryObserver] = ()):
        self.observers: List[TelemetryObserver] = list(observers)

    def add(self, observer: TelemetryObserver) -> None:
        self.observers.append(observer)

    def on_round_started(self, round_id, time):
        for observer in self.observers:
            observer.on_round_started(round_id, time)

    def on_update_received(self, round_id, client_id, time):
        for observer in self.observers:
            observer.on_update_received(round_id, client_id, time)

    def on_update_accepted(self, round_id, client_id, sample_count, time):
        for observer in self.observers:
            observer.on_update_accepted(round_id, client_id, sample_count, time)

    def on_update_rejected(self, round_id, client_id, reason, time):
        for observer in self.observers:
            observer.on_update_rejected(round_id, client_id, reason, time)

    def on_model_accuracy(self, round_id, client_id, accuracy, time):
        for observer in self.observers:
            observer.on_model_accuracy(round_id, client_id, accuracy, time)

    def on_aggregation_started(self, round_id, time):
        for observer in self.observers:
            observer.on_aggregation_started(round_id, time)

    def on_round_aggregated(self, round_id, num_updates, total_samples, time):
        for observer in self.observers:
            observer.on_round_aggregated(round_id, num_updates, total_samples, time)

    def on_aggregation_skipped(self, round_id, reason, time):
        for observer in self.observers:
            observer.on_aggregation_skipped(round_id, reason, time)

    def on_round_ended(self, round_id, time):
        for observer in self.observers:
            observer.on_round_ended(round_id, time)

    def on_federation_completed(self, rounds_completed, time):
        for observer in self.observers:
            observer.on_federation_completed(rounds_completed, time)

    def on_training_completed(self, client_id, round_id, accuracy, time):
        for observer in self.observers:
            observer.on_training_completed(client_id, round_id, accuracy, time)
