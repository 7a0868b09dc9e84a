"""
Trainer module for local model training.

Trains the local model on the client's private samples and scores it.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..model import LinearModel, TrainingSample, samples_to_arrays


@dataclass(frozen=True)
class TrainingResult:
    """Outcome of one local training run."""
    num_samples: int
    mean_absolute_error: float
    accuracy: float


def mean_absolute_error(model: LinearModel, samples: Sequence[TrainingSample]) -> float:
    """
    Mean absolute prediction error of a model on a sample set.

    Raises:
        ValueError: If samples is empty
    """
    if not samples:
        raise ValueError("Cannot evaluate a model on an empty sample set")

    features, targets = samples_to_arrays(samples, model.input_dimension)
    return float(np.mean(np.abs(model.predict_batch(features) - targets)))


def accuracy_from_error(error: float) -> float:
    """Map a mean absolute error onto (0, 1]: 1 / (1 + error)."""
    return 1.0 / (1.0 + error)


def evaluate_model(model: LinearModel, samples: Sequence[TrainingSample]) -> float:
    """
    Score a model on a sample set.

    Args:
        model: Model to evaluate
        samples: Evaluation samples

    Returns:
        Accuracy in (0, 1], higher is better
    """
    return accuracy_from_error(mean_absolute_error(model, samples))


def train_and_evaluate(model: LinearModel, samples: Sequence[TrainingSample]) -> TrainingResult:
    """
    Train the local model in place, then score it on the same samples.

    Args:
        model: Local model (mutated)
        samples: Private training samples (left untouched)

    Returns:
        TrainingResult with the post-training error and accuracy
    """
    model.train(samples)
    error = mean_absolute_error(model, samples)

    return TrainingResult(
        num_samples=len(samples),
        mean_absolute_error=error,
        accuracy=accuracy_from_error(error),
    )
