"""
Client round agent for federated averaging.

Reacts to GlobalUpdate messages:
1. Adopt the round id and the global weights
2. Schedule one local training run (unless one is already queued)
3. Train, evaluate, and report a LocalUpdate to the coordinator
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from ..config import FederationConfig
from ..exceptions import MessageDecodeError, SerializationError, UnresolvedEndpoint
from ..messages import GlobalUpdate, LocalUpdate, decode_message, encode_message
from ..model import LinearModel, TrainingSample
from ..scheduler import Scheduler, Timer
from ..telemetry import TelemetryObserver
from ..transport import COORDINATOR_ENDPOINT, Transport, client_endpoint
from ..utils.logger import get_logger, log_event
from .data import generate_synthetic_data
from .trainer import TrainingResult, train_and_evaluate


logger = get_logger("client", __name__)


class ClientAgent:
    """
    One federated client.

    Owns its local model and its private training set; nothing crosses the
    client boundary except serialized weights inside messages.

    Attributes:
        client_id: Identifier of the client (>= 0).
        current_round: Round of the last GlobalUpdate received.
        training_in_progress: True while a training run is queued.
    """

    def __init__(
        self,
        client_id: int,
        transport: Transport,
        scheduler: Scheduler,
        training_data: Sequence[TrainingSample],
        model: Optional[LinearModel] = None,
        training_delay: float = 0.1,
        training_stagger: float = 0.05,
        start_delay: float = 0.0,
        observer: Optional[TelemetryObserver] = None,
        coordinator_endpoint: str = COORDINATOR_ENDPOINT
    ):
        """
        Initialize the client and register its receive handler.

        Args:
            client_id: Identifier of the client
            transport: Transport used to reach the coordinator
            scheduler: Scheduler driving the training timer
            training_data: Private training samples
            model: Local model (default 5-dim LinearModel if None)
            training_delay: Base delay between a GlobalUpdate and training
            training_stagger: Extra delay per client id
            start_delay: Delay between start() and accepting payloads
            observer: Telemetry observer (no-op if None)
            coordinator_endpoint: Endpoint name of the coordinator
        """
        if client_id < 0:
            raise ValueError(f"client_id must not be negative, got {client_id}")

        self.client_id = client_id
        self.transport = transport
        self.scheduler = scheduler
        self.training_data: Tuple[TrainingSample, ...] = tuple(training_data)
        self.local_model = model or LinearModel()
        self.training_delay = training_delay
        self.training_stagger = training_stagger
        self.start_delay = start_delay
        self.observer = observer or TelemetryObserver()
        self.coordinator_endpoint = coordinator_endpoint
        self.endpoint = client_endpoint(client_id)

        self.current_round = 0
        self.training_in_progress = False
        self.running = False
        self.coordinator_reachable = False
        self._training_timer: Optional[Timer] = None
        self._start_timer: Optional[Timer] = None

        # Statistics
        self.num_sent = 0
        self.num_received = 0
        self.rounds_participated = 0
        self.last_result: Optional[TrainingResult] = None

        self.transport.register(self.endpoint, self.handle_payload)

    @classmethod
    def from_config(
        cls,
        client_id: int,
        config: FederationConfig,
        transport: Transport,
        scheduler: Scheduler,
        observer: Optional[TelemetryObserver] = None
    ) -> "ClientAgent":
        """Create a client with synthetic data and a model shaped by config."""
        seed = None if config.seed is None else config.seed + client_id + 1
        return cls(
            client_id=client_id,
            transport=transport,
            scheduler=scheduler,
            training_data=generate_synthetic_data(client_id, config.model.input_dimension),
            model=LinearModel.from_config(config.model, seed=seed),
            training_delay=config.training_delay,
            training_stagger=config.training_stagger,
            start_delay=config.client_start_delay,
            observer=observer,
        )

    @property
    def scheduled_training_delay(self) -> float:
        """Deterministic per-client delay before training starts."""
        return self.training_delay + self.training_stagger * self.client_id

    def _log(self, event: str, level: str = "INFO", **kwargs: Any) -> None:
        log_event(
            logger, event, level=level, client_id=self.client_id, component="client",
            sim_time=round(self.scheduler.now(), 6), **kwargs
        )

    def start(self) -> None:
        """
        Resolve the coordinator endpoint and start accepting payloads.

        With a start delay the client stays inactive until the delay has
        elapsed; payloads arriving before then are ignored.
        """
        if self.running or self._start_timer is not None:
            return
        if self.start_delay > 0:
            self._start_timer = self.scheduler.schedule(
                self.start_delay, self._activate, name=f"start-{self.client_id}"
            )
            return
        self._activate()

    def _activate(self) -> None:
        self._start_timer = None
        self.running = True

        try:
            self.transport.resolve(self.coordinator_endpoint)
            self.coordinator_reachable = True
        except UnresolvedEndpoint as e:
            self.coordinator_reachable = False
            self._log("endpoint_unresolved", level="ERROR", endpoint=e.endpoint)

        if not self.training_data:
            self._log("no_training_data", level="WARNING")

        self._log("client_started", num_samples=len(self.training_data),
                  coordinator_reachable=self.coordinator_reachable)

    def stop(self) -> None:
        """Revoke a queued training run and stop reacting to payloads."""
        self.scheduler.cancel(self._start_timer)
        self._start_timer = None
        self.scheduler.cancel(self._training_timer)
        self._training_timer = None
        self.training_in_progress = False
        if self.running:
            self.running = False
            self._log("client_stopped", rounds_participated=self.rounds_participated,
                      num_sent=self.num_sent, num_received=self.num_received)

    def handle_payload(self, payload: bytes) -> None:
        """Receive handler registered with the transport."""
        self.scheduler.run_exclusive(self._process_payload, payload)

    def _process_payload(self, payload: bytes) -> None:
        if not self.running:
            return

        self.num_received += 1

        try:
            message = decode_message(payload)
        except MessageDecodeError as e:
            self._log("message_rejected", level="WARNING", error=str(e))
            return

        if isinstance(message, GlobalUpdate):
            self.on_global_update(message)
        else:
            self._log("unexpected_message", level="WARNING",
                      message_type=message.type, round_id=message.round_id)

    def on_global_update(self, update: GlobalUpdate) -> None:
        """
        Adopt a global model and queue one training run.

        A global model that cannot be deserialized is skipped and the previous
        local model kept. While a run is already queued, further updates only
        refresh the round id and weights.
        """
        self.current_round = update.round_id
        self._log("global_update_received", round_id=update.round_id)

        try:
            self.local_model.deserialize(update.weights)
        except SerializationError as e:
            self._log("global_model_rejected", level="WARNING",
                      round_id=update.round_id, error=str(e))
            return

        if self.training_in_progress:
            self._log("training_already_scheduled", level="DEBUG", round_id=update.round_id)
            return

        self.training_in_progress = True
        delay = self.scheduled_training_delay
        self._training_timer = self.scheduler.schedule(
            delay, self.train_and_report, name=f"train-{self.client_id}"
        )
        self._log("training_scheduled", level="DEBUG", round_id=update.round_id, delay=delay)

    def train_and_report(self) -> Optional[TrainingResult]:
        """
        Train on the private data and send a LocalUpdate to the coordinator.

        Returns:
            The training result, or None if there was no data to train on
        """
        self._training_timer = None

        try:
            if not self.training_data:
                self._log("training_skipped", level="WARNING", round_id=self.current_round,
                          reason="no training data")
                return None

            result = train_and_evaluate(self.local_model, self.training_data)
            self.last_result = result
            self.rounds_participated += 1

            self._log("training_completed", round_id=self.current_round,
                      accuracy=result.accuracy, mae=result.mean_absolute_error)
            self.observer.on_training_completed(
                self.client_id, self.current_round, result.accuracy, self.scheduler.now()
            )

            self.send_model_update(result)
            return result
        finally:
            self.training_in_progress = False

    def send_model_update(self, result: TrainingResult) -> bool:
        """
        Send the local weights for the current round to the coordinator.

        Returns:
            True if the payload was handed to the transport
        """
        update = LocalUpdate(
            round_id=self.current_round,
            sender_id=self.client_id,
            weights=self.local_model.serialize(),
            sample_count=len(self.training_data),
            accuracy=result.accuracy,
        )

        try:
            self.transport.send(self.coordinator_endpoint, encode_message(update))
        except UnresolvedEndpoint as e:
            self._log("endpoint_unresolved", level="ERROR",
                      round_id=self.current_round, endpoint=e.endpoint)
            return False

        self.num_sent += 1
        self._log("model_update_sent", round_id=self.current_round,
                  sample_count=update.sample_count)
        return True

    def status(self) -> Dict[str, Any]:
        """
        Get client status.

        Returns:
            Dict with round, training state and statistics
        """
        return {
            "client_id": self.client_id,
            "running": self.running,
            "current_round": self.current_round,
            "training_in_progress": self.training_in_progress,
            "num_samples": len(self.training_data),
            "rounds_participated": self.rounds_participated,
            "num_sent": self.num_sent,
            "num_received": self.num_received,
            "last_accuracy": self.last_result.accuracy if self.last_result else None,
            "local_weights": self.local_model.weights.tolist(),
        }
