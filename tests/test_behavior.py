import pytest

from fedavg.behavior import LinkBehavior
from fedavg.config import FederationConfig


def test_lossless_link_never_drops():
    behavior = LinkBehavior(loss_probability=0.0, seed=1)

    assert not any(behavior.should_drop() for _ in range(100))


def test_fully_lossy_link_always_drops():
    behavior = LinkBehavior(loss_probability=1.0, seed=1)

    assert all(behavior.should_drop() for _ in range(100))


def test_loss_is_reproducible_with_seed():
    a = LinkBehavior(loss_probability=0.5, seed=9)
    b = LinkBehavior(loss_probability=0.5, seed=9)

    assert [a.should_drop() for _ in range(50)] == [b.should_drop() for _ in range(50)]


def test_delivery_delay_without_jitter():
    assert LinkBehavior(latency=0.25).delivery_delay() == 0.25


def test_delivery_delay_with_jitter():
    behavior = LinkBehavior(latency=0.1, jitter=0.05, seed=3)

    delays = [behavior.delivery_delay() for _ in range(50)]

    assert all(0.1 <= d <= 0.15 for d in delays)


@pytest.mark.parametrize("kwargs", [
    {"latency": -1.0},
    {"jitter": -0.1},
    {"loss_probability": 1.5},
])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        LinkBehavior(**kwargs)


def test_from_config():
    config = FederationConfig(latency=0.2, loss_probability=0.3, seed=4)

    behavior = LinkBehavior.from_config(config)

    assert behavior.latency == 0.2
    assert behavior.loss_probability == 0.3
