"""
Simulation Driver

Runs a whole federation (one coordinator, N clients) in a single process on
the discrete-event scheduler and the in-memory transport.

Usage:
    python -m fedavg.simulation

Configuration is read from FEDAVG_* environment variables; the run summary
is printed as JSON.
"""

import json
from typing import Any, Dict, List, Optional

from .behavior import LinkBehavior
from .client.agent import ClientAgent
from .client.data import TRUE_BIAS, true_weights
from .config import FederationConfig
from .coordinator.metrics import MetricsCollector
from .coordinator.service import Coordinator
from .scheduler import EventScheduler
from .telemetry import CompositeObserver, TelemetryObserver
from .transport import InMemoryTransport
from .utils.logger import configure_logging, get_logger, log_event


logger = get_logger("simulation", __name__)


class Simulation:
    """
    In-process federation on a virtual clock.

    Attributes:
        config: Federation configuration.
        scheduler: Discrete-event scheduler shared by every role.
        transport: Simulated network.
        metrics: Metrics collector attached to every role.
        coordinator: The coordinator.
        clients: Client agents, indexed by client id.
    """

    def __init__(
        self,
        config: FederationConfig,
        observer: Optional[TelemetryObserver] = None,
        behavior: Optional[LinkBehavior] = None
    ):
        """
        Build the federation.

        Args:
            config: Federation configuration (validated here)
            observer: Additional telemetry observer
            behavior: Link behavior (derived from config if None)
        """
        config.validate()
        self.config = config

        self.scheduler = EventScheduler()
        self.transport = InMemoryTransport(
            self.scheduler, behavior or LinkBehavior.from_config(config)
        )
        self.metrics = MetricsCollector(config.metrics_dir)

        self.observer = CompositeObserver([self.metrics])
        if observer is not None:
            self.observer.add(observer)

        # Clients first so the coordinator can resolve them on start
        self.clients: List[ClientAgent] = [
            ClientAgent.from_config(client_id, config, self.transport, self.scheduler,
                                    observer=self.observer)
            for client_id in range(config.num_clients)
        ]
        self.coordinator = Coordinator(
            config, self.transport, self.scheduler, observer=self.observer
        )

    def start(self) -> None:
        """Start every client, then the coordinator."""
        for client in self.clients:
            client.start()
        self.coordinator.start()

    def stop(self) -> None:
        """Stop the coordinator and every client, revoking their timers."""
        self.coordinator.stop()
        for client in self.clients:
            client.stop()

    def run(self, until: Optional[float] = None) -> Dict[str, Any]:
        """
        Start the federation and process events.

        Without ``until`` the run ends once the coordinator has completed
        and no events remain.

        Args:
            until: Virtual time to stop at

        Returns:
            Run summary (see ``summary``)
        """
        self.start()
        events = self.scheduler.run(until=until)
        log_event(
            logger, "simulation_finished", component="simulation",
            events=events, sim_time=self.scheduler.now(),
            state=self.coordinator.state.value
        )
        self.stop()
        return self.summary()

    def summary(self) -> Dict[str, Any]:
        """
        Summarize the run.

        Returns:
            Dict with the coordinator outcome, network and client statistics,
            and the collected metrics
        """
        dimension = self.config.model.input_dimension
        return {
            "sim_time": self.scheduler.now(),
            "state": self.coordinator.state.value,
            "rounds_run": self.coordinator.current_round,
            "global_weights": self.coordinator.global_model.weights.tolist(),
            "true_weights": [TRUE_BIAS] + true_weights(dimension).tolist(),
            "network": self.transport.stats(),
            "clients": {
                str(client.client_id): {
                    "rounds_participated": client.rounds_participated,
                    "last_accuracy": client.last_result.accuracy if client.last_result else None,
                }
                for client in self.clients
            },
            "metrics": self.metrics.get_all_metrics()["global"],
        }


def main() -> None:
    """Main entry point for the simulation."""
    config = FederationConfig.from_env()
    configure_logging(config.log_dir, config.log_level)

    summary = Simulation(config).run()
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
