import numpy as np
import pytest

from fedavg.coordinator.aggregator import Aggregator, weighted_average
from fedavg.coordinator.round_manager import RoundRecord
from fedavg.exceptions import AggregationSkipped, DimensionMismatch, SerializationError


def test_weighted_average():
    vectors = [np.array([1.0, 0.0, 0.0]), np.array([0.0, 2.0, 0.0]), np.array([0.0, 0.0, 3.0])]

    result = weighted_average(vectors, [10, 30, 10])

    assert np.allclose(result, [0.2, 1.2, 0.6])


def test_weighted_average_single_client_is_identity():
    result = weighted_average([np.array([0.5, -0.25])], [7])

    assert np.allclose(result, [0.5, -0.25])


def test_weighted_average_empty():
    with pytest.raises(AggregationSkipped):
        weighted_average([], [])


def test_weighted_average_zero_samples():
    with pytest.raises(AggregationSkipped):
        weighted_average([np.array([1.0]), np.array([2.0])], [0, 0])


def test_weighted_average_dimension_mismatch():
    with pytest.raises(DimensionMismatch):
        weighted_average([np.array([1.0, 2.0]), np.array([1.0])], [1, 1])


def test_aggregate_round_record():
    record = RoundRecord(round_id=1)
    record.record(2, "0.0;0.0;3.0", 10)
    record.record(0, "1.0;0.0;0.0", 10)
    record.record(1, "0.0;2.0;0.0", 30)

    result = Aggregator(num_weights=3).aggregate(record)

    assert np.allclose(result, [0.2, 1.2, 0.6])


def test_aggregate_empty_record():
    with pytest.raises(AggregationSkipped):
        Aggregator(num_weights=3).aggregate(RoundRecord(round_id=1))


def test_aggregate_zero_total_samples():
    record = RoundRecord(round_id=1)
    record.record(0, "1.0;1.0", 0)

    with pytest.raises(AggregationSkipped):
        Aggregator(num_weights=2).aggregate(record)


def test_aggregate_malformed_weights():
    record = RoundRecord(round_id=1)
    record.record(0, "1.0;oops", 5)

    with pytest.raises(SerializationError):
        Aggregator(num_weights=2).aggregate(record)
