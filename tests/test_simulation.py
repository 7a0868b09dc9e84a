import json

import numpy as np

from fedavg.config import FederationConfig
from fedavg.coordinator.round_manager import CoordinatorState
from fedavg.simulation import Simulation, main


def make_config(**overrides):
    values = dict(num_clients=3, max_rounds=3, round_interval=10.0, seed=1)
    values.update(overrides)
    return FederationConfig(**values)


def test_every_round_aggregates():
    summary = Simulation(make_config()).run()

    assert summary["state"] == "COMPLETED"
    assert summary["rounds_run"] == 3
    assert summary["metrics"]["rounds_aggregated"] == 3
    assert summary["metrics"]["total_failed_updates"] == 0
    assert summary["network"]["dropped"] == 0
    assert all(c["rounds_participated"] == 3 for c in summary["clients"].values())


def test_global_model_moves_towards_ground_truth():
    sim = Simulation(make_config(max_rounds=5))
    initial = sim.coordinator.global_model.weights

    summary = sim.run()

    truth = np.array(summary["true_weights"])
    final = np.array(summary["global_weights"])
    assert np.linalg.norm(final - truth) < np.linalg.norm(initial - truth)


def test_runs_are_reproducible():
    first = Simulation(make_config()).run()
    second = Simulation(make_config()).run()

    assert first["global_weights"] == second["global_weights"]


def test_slow_client_blocks_aggregation_but_rounds_advance():
    sim = Simulation(make_config(training_stagger=20.0))
    initial = sim.coordinator.global_model.weights.tolist()

    summary = sim.run()

    assert summary["state"] == "COMPLETED"
    assert summary["rounds_run"] == 3
    assert summary["metrics"]["rounds_aggregated"] == 0
    assert summary["global_weights"] == initial


def test_lossy_network_never_aggregates():
    summary = Simulation(make_config(loss_probability=1.0)).run()

    assert summary["state"] == "COMPLETED"
    assert summary["metrics"]["rounds_aggregated"] == 0
    assert summary["network"]["delivered"] == 0


def test_run_until_stops_midway():
    sim = Simulation(make_config())

    sim.run(until=12.0)

    assert sim.coordinator.state == CoordinatorState.ROUND_ACTIVE
    assert sim.coordinator.current_round == 2
    assert not sim.coordinator.running


def test_observer_receives_events():
    class Recorder:
        def __init__(self):
            self.rounds = []

        def __getattr__(self, name):
            return lambda *args: None

        def on_round_started(self, round_id, time):
            self.rounds.append(round_id)

    recorder = Recorder()
    Simulation(make_config(), observer=recorder).run()

    assert recorder.rounds == [1, 2, 3]


def test_metrics_persisted(tmp_path):
    Simulation(make_config(metrics_dir=str(tmp_path))).run()

    assert (tmp_path / "round_3.json").exists()
    assert "Round 1" in (tmp_path / "rounds.log").read_text()


def test_main_prints_summary(monkeypatch, capsys):
    monkeypatch.setenv("FEDAVG_MAX_ROUNDS", "2")
    monkeypatch.setenv("FEDAVG_SEED", "3")
    monkeypatch.setattr("fedavg.simulation.configure_logging", lambda *args, **kwargs: None)

    main()

    output = capsys.readouterr().out
    summary = json.loads(output[output.index("{\n"):])
    assert summary["state"] == "COMPLETED"
    assert summary["rounds_run"] == 2
