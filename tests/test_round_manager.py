import pytest

from fedavg.coordinator.round_manager import CoordinatorState, RoundManager, RoundRecord
from fedavg.exceptions import StaleOrUnexpectedRound, UnknownClient


def test_initial_state():
    manager = RoundManager(num_clients=3, max_rounds=2)

    assert manager.state == CoordinatorState.IDLE
    assert manager.current_round == 0
    assert manager.record is None


def test_round_progression_and_completion():
    manager = RoundManager(num_clients=1, max_rounds=2)

    assert manager.start_next_round() == 1
    assert manager.state == CoordinatorState.ROUND_ACTIVE
    assert manager.start_next_round() == 2
    assert manager.start_next_round() is None
    assert manager.state == CoordinatorState.COMPLETED
    assert manager.current_round == 2
    assert manager.start_next_round() is None


def test_each_round_starts_empty():
    manager = RoundManager(num_clients=2, max_rounds=3)
    manager.start_next_round()
    manager.add_update(0, 1, "1.0", 5)

    manager.start_next_round()

    assert manager.record.round_id == 2
    assert manager.record.num_updates == 0
    assert manager.rounds[1].num_updates == 1


def test_add_update_triggers_once():
    manager = RoundManager(num_clients=2, max_rounds=1)
    manager.start_next_round()

    assert manager.add_update(0, 1, "1.0", 5) is False
    assert manager.add_update(1, 1, "2.0", 5) is True
    # A repeat after aggregation is recorded but never triggers again
    assert manager.add_update(1, 1, "3.0", 5) is False
    assert manager.record.received_models[1] == "3.0"


def test_duplicate_update_does_not_count_twice():
    manager = RoundManager(num_clients=2, max_rounds=1)
    manager.start_next_round()

    assert manager.add_update(0, 1, "1.0", 5) is False
    assert manager.add_update(0, 1, "1.5", 8) is False

    record = manager.record
    assert record.num_updates == 1
    assert record.received_models[0] == "1.5"
    assert record.samples_per_client[0] == 8


def test_stale_round_rejected():
    manager = RoundManager(num_clients=2, max_rounds=3)
    manager.start_next_round()
    manager.start_next_round()

    with pytest.raises(StaleOrUnexpectedRound) as exc_info:
        manager.add_update(0, 1, "1.0", 5)

    assert exc_info.value.current_round == 2
    assert manager.record.num_updates == 0


def test_update_before_first_round_rejected():
    manager = RoundManager(num_clients=1, max_rounds=1)

    with pytest.raises(StaleOrUnexpectedRound):
        manager.validate_update(0, 0)


def test_update_after_completion_rejected():
    manager = RoundManager(num_clients=1, max_rounds=1)
    manager.start_next_round()
    manager.start_next_round()

    with pytest.raises(StaleOrUnexpectedRound):
        manager.add_update(0, 1, "1.0", 5)


def test_unknown_client_rejected():
    manager = RoundManager(num_clients=2, max_rounds=1)
    manager.start_next_round()

    with pytest.raises(UnknownClient):
        manager.add_update(5, 1, "1.0", 5)


def test_round_record_properties():
    record = RoundRecord(round_id=4)

    assert record.record(2, "a", 10) is True
    assert record.record(0, "b", 5) is True
    assert record.record(2, "c", 20) is False
    assert record.contributors == [0, 2]
    assert record.total_samples == 25


def test_get_round_status():
    manager = RoundManager(num_clients=2, max_rounds=2)
    manager.start_next_round()
    manager.add_update(1, 1, "1.0", 7)

    status = manager.get_round_status(1)

    assert status["active"] is True
    assert status["contributors"] == [1]
    assert status["total_samples"] == 7
    assert status["aggregation_triggered"] is False
    assert manager.get_round_status(9) is None
