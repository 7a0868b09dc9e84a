import pytest

from fedavg.config import FederationConfig, ModelConfig
from fedavg.exceptions import ConfigurationError


def test_defaults():
    config = FederationConfig()

    assert config.num_clients == 3
    assert config.max_rounds == 10
    assert config.round_interval == 10.0
    assert config.seed is None
    assert config.model == ModelConfig(5, 0.01, 32, 3)
    config.validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv("FEDAVG_NUM_CLIENTS", "5")
    monkeypatch.setenv("FEDAVG_MAX_ROUNDS", "2")
    monkeypatch.setenv("FEDAVG_ROUND_INTERVAL", "0.5")
    monkeypatch.setenv("FEDAVG_SEED", "11")
    monkeypatch.setenv("FEDAVG_INPUT_DIMENSION", "3")
    monkeypatch.setenv("FEDAVG_METRICS_DIR", "/tmp/metrics")
    monkeypatch.setenv("FEDAVG_CLIENT_START_DELAY", "2.5")

    config = FederationConfig.from_env()

    assert config.num_clients == 5
    assert config.max_rounds == 2
    assert config.round_interval == 0.5
    assert config.seed == 11
    assert config.model.input_dimension == 3
    assert config.metrics_dir == "/tmp/metrics"
    assert config.client_start_delay == 2.5
    assert config.log_dir is None


def test_dict_round_trip():
    config = FederationConfig(num_clients=4, seed=3, model=ModelConfig(input_dimension=2))

    assert FederationConfig.from_dict(config.to_dict()) == config


@pytest.mark.parametrize("overrides", [
    {"num_clients": 0},
    {"max_rounds": 0},
    {"round_interval": 0.0},
    {"start_delay": -1.0},
    {"client_start_delay": -0.5},
    {"loss_probability": 1.5},
    {"model": ModelConfig(input_dimension=0)},
    {"model": ModelConfig(batch_size=0)},
])
def test_validate_rejects(overrides):
    with pytest.raises(ConfigurationError):
        FederationConfig(**overrides).validate()


def test_endpoint_urls():
    config = FederationConfig(num_clients=2, host="10.0.0.1", coordinator_port=8000,
                              client_base_port=8100)

    assert config.endpoint_urls() == {
        "coordinator": "http://10.0.0.1:8000",
        "client[0]": "http://10.0.0.1:8100",
        "client[1]": "http://10.0.0.1:8101",
    }
