"""
Configuration module for the federated averaging protocol.

Stores all configuration values used by the coordinator, the clients and the
simulation driver. Every value has a default and can be
overridden through FEDAVG_* environment variables.
"""

import os
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError
from .transport import COORDINATOR_ENDPOINT, client_endpoint


ENV_PREFIX = "FEDAVG_"


def _getenv(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _getenv_optional_int(name: str) -> Optional[int]:
    value = os.getenv(f"{ENV_PREFIX}{name}", "")
    return int(value) if value else None


@dataclass
class ModelConfig:
    """
    Hyperparameters of the linear model, fixed at construction.

    Attributes:
        input_dimension: Number of input features (weights = dimension + 1).
        learning_rate: Gradient descent step size.
        batch_size: Samples per mini-batch.
        num_epochs: Passes over the local data per training run.
    """
    input_dimension: int = 5
    learning_rate: float = 0.01
    batch_size: int = 32
    num_epochs: int = 3

    @classmethod
    def from_env(cls) -> "ModelConfig":
        """Create a model config from environment variables."""
        return cls(
            input_dimension=int(_getenv("INPUT_DIMENSION", "5")),
            learning_rate=float(_getenv("LEARNING_RATE", "0.01")),
            batch_size=int(_getenv("BATCH_SIZE", "32")),
            num_epochs=int(_getenv("NUM_EPOCHS", "3")),
        )


@dataclass
class FederationConfig:
    """
    Configuration for one federation (coordinator plus a fixed client set).

    Attributes:
        num_clients: Total number of clients the coordinator waits for.
        host: Host name used to build service URLs.
        coordinator_port: Port of the coordinator service.
        client_base_port: Port of client 0; client i listens on base + i.
        max_rounds: Number of federated rounds before completion.
        round_interval: Seconds between round-advance timers.
        start_delay: Seconds before the first round starts.
        client_start_delay: Seconds after start before a client accepts payloads.
        training_delay: Base delay before a client trains after a global update.
        training_stagger: Extra delay per client id, spreading training load.
        request_timeout: HTTP send timeout in seconds.
        latency: One-way delivery latency of the simulated network.
        loss_probability: Probability that the simulated network drops a payload.
        seed: Seed for model initialization and the simulated network.
        log_level: Logging level name.
        log_dir: Directory for JSON log files (console only if None).
        metrics_dir: Directory for persisted round metrics (in memory if None).
        model: Model hyperparameters.
    """
    num_clients: int = 3
    host: str = "127.0.0.1"
    coordinator_port: int = 9000
    client_base_port: int = 9100
    max_rounds: int = 10
    round_interval: float = 10.0
    start_delay: float = 1.0
    client_start_delay: float = 0.0
    training_delay: float = 0.1
    training_stagger: float = 0.05
    request_timeout: float = 5.0
    latency: float = 0.01
    loss_probability: float = 0.0
    seed: Optional[int] = None
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    metrics_dir: Optional[str] = None
    model: ModelConfig = field(default_factory=ModelConfig)

    @classmethod
    def from_env(cls) -> "FederationConfig":
        """Create a federation config from environment variables."""
        return cls(
            num_clients=int(_getenv("NUM_CLIENTS", "3")),
            host=_getenv("HOST", "127.0.0.1"),
            coordinator_port=int(_getenv("COORDINATOR_PORT", "9000")),
            client_base_port=int(_getenv("CLIENT_BASE_PORT", "9100")),
            max_rounds=int(_getenv("MAX_ROUNDS", "10")),
            round_interval=float(_getenv("ROUND_INTERVAL", "10.0")),
            start_delay=float(_getenv("START_DELAY", "1.0")),
            client_start_delay=float(_getenv("CLIENT_START_DELAY", "0.0")),
            training_delay=float(_getenv("TRAINING_DELAY", "0.1")),
            training_stagger=float(_getenv("TRAINING_STAGGER", "0.05")),
            request_timeout=float(_getenv("REQUEST_TIMEOUT", "5.0")),
            latency=float(_getenv("LATENCY", "0.01")),
            loss_probability=float(_getenv("LOSS_PROBABILITY", "0.0")),
            seed=_getenv_optional_int("SEED"),
            log_level=_getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv(f"{ENV_PREFIX}LOG_DIR") or None,
            metrics_dir=os.getenv(f"{ENV_PREFIX}METRICS_DIR") or None,
            model=ModelConfig.from_env(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to nested dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FederationConfig":
        """Create config from dictionary."""
        values = dict(d)
        model = ModelConfig(**values.pop("model", {}))
        return cls(model=model, **values)

    def validate(self) -> None:
        """
        Check that every value is usable.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.num_clients <= 0:
            raise ConfigurationError(f"num_clients must be positive, got {self.num_clients}")
        if self.max_rounds <= 0:
            raise ConfigurationError(f"max_rounds must be positive, got {self.max_rounds}")
        if self.round_interval <= 0:
            raise ConfigurationError(f"round_interval must be positive, got {self.round_interval}")
        delays = (self.start_delay, self.client_start_delay,
                  self.training_delay, self.training_stagger)
        if any(delay < 0 for delay in delays):
            raise ConfigurationError("delays must not be negative")
        if self.latency < 0:
            raise ConfigurationError(f"latency must not be negative, got {self.latency}")
        if not 0.0 <= self.loss_probability <= 1.0:
            raise ConfigurationError(
                f"loss_probability must be within [0, 1], got {self.loss_probability}"
            )
        if self.model.input_dimension <= 0:
            raise ConfigurationError(
                f"input_dimension must be positive, got {self.model.input_dimension}"
            )
        if self.model.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {self.model.batch_size}")
        if self.model.num_epochs <= 0:
            raise ConfigurationError(f"num_epochs must be positive, got {self.model.num_epochs}")
        if self.model.learning_rate < 0:
            raise ConfigurationError(
                f"learning_rate must not be negative, got {self.model.learning_rate}"
            )

    @property
    def coordinator_url(self) -> str:
        """Base URL of the coordinator service."""
        return f"http://{self.host}:{self.coordinator_port}"

    def client_url(self, client_id: int) -> str:
        """Base URL of a client service."""
        return f"http://{self.host}:{self.client_base_port + client_id}"

    def endpoint_urls(self) -> Dict[str, str]:
        """Map every endpoint name of the federation to its service URL."""
        urls = {COORDINATOR_ENDPOINT: self.coordinator_url}
        for client_id in range(self.num_clients):
            urls[client_endpoint(client_id)] = self.client_url(client_id)
        return urls
