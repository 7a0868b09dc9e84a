import numpy as np
import pytest

from fedavg.client.data import TRUE_BIAS, generate_synthetic_data, true_weights
from fedavg.client.trainer import (
    accuracy_from_error,
    evaluate_model,
    mean_absolute_error,
    train_and_evaluate,
)
from fedavg.model import LinearModel, TrainingSample


def test_accuracy_from_error():
    assert accuracy_from_error(0.0) == 1.0
    assert accuracy_from_error(1.0) == 0.5
    assert accuracy_from_error(3.0) == 0.25


def test_mean_absolute_error():
    model = LinearModel(input_dimension=1, seed=0)
    model.set_weights([0.0, 1.0])
    samples = [
        TrainingSample(features=(1.0,), target=2.0),
        TrainingSample(features=(2.0,), target=2.0),
        TrainingSample(features=(3.0,), target=1.0),
    ]

    assert mean_absolute_error(model, samples) == pytest.approx(1.0)
    assert evaluate_model(model, samples) == pytest.approx(0.5)


def test_mean_absolute_error_empty():
    with pytest.raises(ValueError):
        mean_absolute_error(LinearModel(input_dimension=1, seed=0), [])


def test_train_and_evaluate():
    samples = generate_synthetic_data(0, input_dimension=2)
    model = LinearModel(input_dimension=2, seed=0)
    before = evaluate_model(model, samples)

    result = train_and_evaluate(model, samples)

    assert result.num_samples == 100
    assert result.accuracy == pytest.approx(1.0 / (1.0 + result.mean_absolute_error))
    assert result.accuracy > before


def test_synthetic_data_sizes():
    assert len(generate_synthetic_data(0)) == 100
    assert len(generate_synthetic_data(1)) == 120
    assert len(generate_synthetic_data(4)) == 180


def test_synthetic_data_is_reproducible_per_client():
    assert generate_synthetic_data(1) == generate_synthetic_data(1)
    assert generate_synthetic_data(1)[0] != generate_synthetic_data(2)[0]


def test_synthetic_data_follows_ground_truth():
    samples = generate_synthetic_data(3, input_dimension=5, noise_std=0.0)
    weights = true_weights(5)

    for sample in samples[:10]:
        expected = TRUE_BIAS + float(np.dot(sample.features, weights))
        assert sample.target == pytest.approx(expected)
        assert all(-5.0 <= x <= 5.0 for x in sample.features)


def test_true_weights_cycle():
    assert true_weights(7).tolist() == [0.5, -1.2, 0.8, 2.0, -0.7, 0.5, -1.2]
