"""
Coordinator Module

Drives the federated averaging rounds:
1. Broadcast the global model for round r to every reachable client
2. Collect LocalUpdates for round r
3. Aggregate as soon as every client has reported
4. Advance to round r + 1 when the round timer fires

The round timer runs on its own cadence; it does not wait for aggregation.
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional

from ..config import FederationConfig
from ..exceptions import (
    AggregationSkipped,
    MessageDecodeError,
    SerializationError,
    StaleOrUnexpectedRound,
    UnknownClient,
    UnresolvedEndpoint,
)
from ..messages import GlobalUpdate, LocalUpdate, decode_message, encode_message
from ..model import LinearModel, parse_weights
from ..scheduler import Scheduler, Timer
from ..telemetry import TelemetryObserver
from ..transport import COORDINATOR_ENDPOINT, Transport, client_endpoint
from ..utils.logger import get_logger, log_event
from .aggregator import Aggregator
from .round_manager import CoordinatorState, RoundManager


logger = get_logger("coordinator", __name__)


class Coordinator:
    """
    Coordinator of a fixed client set.

    Owns the global model and all round accumulation state. Every reaction
    to a timer or an inbound payload runs to completion before the next one.
    """

    def __init__(
        self,
        config: FederationConfig,
        transport: Transport,
        scheduler: Scheduler,
        model: Optional[LinearModel] = None,
        observer: Optional[TelemetryObserver] = None,
        endpoint: str = COORDINATOR_ENDPOINT
    ):
        """
        Initialize the coordinator and register its receive handler.

        Args:
            config: Federation configuration
            transport: Transport used to reach the clients
            scheduler: Scheduler driving the round timer
            model: Global model (built from config.model if None)
            observer: Telemetry observer (no-op if None)
            endpoint: Endpoint name the coordinator listens on
        """
        self.config = config
        self.transport = transport
        self.scheduler = scheduler
        self.endpoint = endpoint
        self.observer = observer or TelemetryObserver()

        self.global_model = model or LinearModel.from_config(config.model, seed=config.seed)
        self.round_manager = RoundManager(config.num_clients, config.max_rounds)
        self.aggregator = Aggregator(self.global_model.num_weights)

        self.reachable_clients: List[int] = []
        self.running = False
        self._round_timer: Optional[Timer] = None

        # Statistics
        self.num_received = 0
        self.packets_per_client: Dict[int, int] = defaultdict(int)
        self.unknown_sender_packets = 0

        self.transport.register(self.endpoint, self.handle_payload)

    @property
    def state(self) -> CoordinatorState:
        return self.round_manager.state

    @property
    def current_round(self) -> int:
        return self.round_manager.current_round

    def _log(self, event: str, level: str = "INFO", **kwargs: Any) -> None:
        log_event(
            logger, event, level=level, component="coordinator",
            sim_time=round(self.scheduler.now(), 6), **kwargs
        )

    def start(self) -> None:
        """
        Resolve the client endpoints and arm the timer for round 1.

        Clients that cannot be resolved are logged and never contacted.
        """
        if self.running:
            return
        self.running = True

        self.reachable_clients = []
        for client_id in sorted(self.round_manager.client_ids):
            try:
                self.transport.resolve(client_endpoint(client_id))
            except UnresolvedEndpoint as e:
                self._log("endpoint_unresolved", level="WARNING",
                          client_id=client_id, endpoint=e.endpoint)
                continue
            self.reachable_clients.append(client_id)

        self._arm_round_timer(self.config.start_delay)
        self._log("coordinator_started", num_clients=self.round_manager.num_clients,
                  reachable_clients=len(self.reachable_clients),
                  max_rounds=self.config.max_rounds)

    def stop(self) -> None:
        """Revoke the round timer and stop reacting to payloads."""
        self.scheduler.cancel(self._round_timer)
        self._round_timer = None
        if self.running:
            self.running = False
            self._log("coordinator_stopped", round_id=self.current_round,
                      num_received=self.num_received)

    def _arm_round_timer(self, delay: float) -> None:
        # Never more than one round timer outstanding
        self.scheduler.cancel(self._round_timer)
        self._round_timer = self.scheduler.schedule(
            delay, self._on_round_timer, name="round-timer"
        )

    def _on_round_timer(self) -> None:
        self._round_timer = None

        if self.state == CoordinatorState.ROUND_ACTIVE:
            self.observer.on_round_ended(self.current_round, self.scheduler.now())

        round_id = self.round_manager.start_next_round()
        if round_id is None:
            self._log("federation_completed", rounds_completed=self.current_round)
            self.observer.on_federation_completed(self.current_round, self.scheduler.now())
            return

        self._log("round_started", round_id=round_id, max_rounds=self.config.max_rounds)
        self.observer.on_round_started(round_id, self.scheduler.now())

        self.broadcast_global_model()
        self._arm_round_timer(self.config.round_interval)

    def broadcast_global_model(self) -> None:
        """Send the current global model to every reachable client."""
        message = GlobalUpdate(
            round_id=self.current_round,
            weights=self.global_model.serialize(),
        )
        payload = encode_message(message)

        for client_id in self.reachable_clients:
            try:
                self.transport.send(client_endpoint(client_id), payload)
            except UnresolvedEndpoint as e:
                self._log("endpoint_unresolved", level="WARNING",
                          client_id=client_id, endpoint=e.endpoint)
                continue
            self._log("global_model_sent", level="DEBUG",
                      round_id=self.current_round, client_id=client_id)

    def handle_payload(self, payload: bytes) -> None:
        """Receive handler registered with the transport."""
        self.scheduler.run_exclusive(self._process_payload, payload)

    def _process_payload(self, payload: bytes) -> None:
        if not self.running:
            self._log("payload_ignored", level="DEBUG", reason="not running")
            return

        self.num_received += 1

        try:
            message = decode_message(payload)
        except MessageDecodeError as e:
            self._log("message_rejected", level="WARNING", error=str(e))
            self.observer.on_update_rejected(None, None, "malformed message",
                                             self.scheduler.now())
            return

        if isinstance(message, LocalUpdate):
            self.process_local_update(message)
        else:
            self._log("unexpected_message", level="WARNING",
                      message_type=message.type, round_id=message.round_id)

    def process_local_update(self, update: LocalUpdate) -> None:
        """
        Record a client's update for the current round.

        Updates for any other round, from unknown clients, or with malformed
        weights are discarded. Aggregation runs as soon as every client has
        reported for the round.
        """
        client_id = update.client_id
        now = self.scheduler.now()

        if client_id in self.round_manager.client_ids:
            self.packets_per_client[client_id] += 1
        else:
            self.unknown_sender_packets += 1
        self.observer.on_update_received(update.round_id, client_id, now)

        try:
            self.round_manager.validate_update(client_id, update.round_id)
            parse_weights(update.weights, expected_size=self.global_model.num_weights)
        except StaleOrUnexpectedRound as e:
            self._log("stale_update", level="WARNING", round_id=update.round_id,
                      client_id=client_id, current_round=e.current_round)
            self.observer.on_update_rejected(update.round_id, client_id, "stale round", now)
            return
        except UnknownClient:
            self._log("unknown_client", level="WARNING", round_id=update.round_id,
                      client_id=client_id)
            self.observer.on_update_rejected(update.round_id, client_id, "unknown client", now)
            return
        except SerializationError as e:
            self._log("malformed_weights", level="WARNING", round_id=update.round_id,
                      client_id=client_id, error=str(e))
            self.observer.on_update_rejected(update.round_id, client_id, "malformed weights", now)
            return

        ready = self.round_manager.add_update(
            client_id, update.round_id, update.weights, update.sample_count
        )

        self._log("update_received", round_id=update.round_id, client_id=client_id,
                  sample_count=update.sample_count,
                  updates=self.round_manager.record.num_updates)
        self.observer.on_update_accepted(update.round_id, client_id, update.sample_count, now)

        if update.has_accuracy:
            self.observer.on_model_accuracy(update.round_id, client_id, update.accuracy, now)

        if ready:
            self._log("all_updates_received", round_id=update.round_id)
            self.aggregate_models()

    def aggregate_models(self) -> bool:
        """
        Replace the global weights with the FedAvg of the current round.

        The global model is left unchanged when aggregation is skipped.

        Returns:
            True if the global model was updated
        """
        record = self.round_manager.record
        if record is None:
            return False

        round_id = record.round_id
        self.observer.on_aggregation_started(round_id, self.scheduler.now())

        try:
            aggregated = self.aggregator.aggregate(record)
        except (AggregationSkipped, SerializationError) as e:
            self._log("aggregation_skipped", level="WARNING", round_id=round_id, reason=str(e))
            self.observer.on_aggregation_skipped(round_id, str(e), self.scheduler.now())
            return False

        self.global_model.set_weights(aggregated)

        self._log("aggregation_completed", round_id=round_id,
                  num_updates=record.num_updates, total_samples=record.total_samples)
        self.observer.on_round_aggregated(
            round_id, record.num_updates, record.total_samples, self.scheduler.now()
        )
        return True

    def status(self) -> Dict[str, Any]:
        """
        Get coordinator status.

        Returns:
            Dict with state, round, participation and statistics
        """
        record = self.round_manager.record
        return {
            "state": self.state.value,
            "running": self.running,
            "current_round": self.current_round,
            "max_rounds": self.config.max_rounds,
            "num_clients": self.round_manager.num_clients,
            "reachable_clients": list(self.reachable_clients),
            "updates_this_round": record.num_updates if record else 0,
            "global_weights": self.global_model.weights.tolist(),
            "num_received": self.num_received,
            "packets_per_client": {str(k): v for k, v in sorted(self.packets_per_client.items())},
            "unknown_sender_packets": self.unknown_sender_packets,
        }
