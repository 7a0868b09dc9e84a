"""
Model Module

Minimal linear regressor exchanged between the coordinator and the clients.

The weight vector holds ``input_dimension + 1`` values: index 0 is the bias,
indices 1..d are the feature weights. The vector travels on the wire as
';'-joined decimal text.
"""

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .config import ModelConfig
from .exceptions import DimensionMismatch, SerializationError


WEIGHT_SEPARATOR = ";"
DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class TrainingSample:
    """One private training example: a feature vector and a scalar target."""
    features: Tuple[float, ...]
    target: float


def format_weights(weights: Iterable[float]) -> str:
    """
    Render a weight vector as ';'-joined decimal text.

    ``repr`` of a Python float is the shortest string that parses back to the
    same double, so the encoding is lossless.

    Args:
        weights: Weight values in index order

    Returns:
        Serialized weights
    """
    return WEIGHT_SEPARATOR.join(repr(float(w)) for w in weights)


def parse_weights(text: str, expected_size: Optional[int] = None) -> np.ndarray:
    """
    Parse ';'-joined decimal text into a weight vector.

    Args:
        text: Serialized weights
        expected_size: Required number of values (any count if None)

    Returns:
        Parsed weights as a float64 array

    Raises:
        SerializationError: If a token is not a finite number or the count differs
    """
    values = []
    for index, token in enumerate(text.split(WEIGHT_SEPARATOR)):
        if not DECIMAL_PATTERN.fullmatch(token):
            raise SerializationError(
                f"Invalid weight token at index {index}: {token!r}"
            )
        value = float(token)
        if not math.isfinite(value):
            raise SerializationError(f"Non-finite weight at index {index}: {token!r}")
        values.append(value)

    if expected_size is not None and len(values) != expected_size:
        raise SerializationError(
            f"Expected {expected_size} weights, got {len(values)}"
        )

    return np.array(values, dtype=np.float64)


def samples_to_arrays(
    samples: Sequence[TrainingSample],
    input_dimension: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Stack samples into a feature matrix and a target vector.

    Raises:
        DimensionMismatch: If any sample has the wrong number of features
    """
    for sample in samples:
        if len(sample.features) != input_dimension:
            raise DimensionMismatch(input_dimension, len(sample.features), "features")

    features = np.array([s.features for s in samples], dtype=np.float64)
    features = features.reshape(len(samples), input_dimension)
    targets = np.array([s.target for s in samples], dtype=np.float64)
    return features, targets


class LinearModel:
    """
    Linear regressor trained with mini-batch gradient descent.

    Hyperparameters are immutable after construction and the weight vector
    always has exactly ``input_dimension + 1`` entries.

    Attributes:
        input_dimension: Number of input features.
        learning_rate: Gradient descent step size.
        batch_size: Samples per mini-batch.
        num_epochs: Passes over the data per ``train`` call.
    """

    def __init__(
        self,
        input_dimension: int = 5,
        learning_rate: float = 0.01,
        batch_size: int = 32,
        num_epochs: int = 3,
        seed: Optional[int] = None,
    ):
        """
        Initialize the model with random weights.

        Args:
            input_dimension: Number of input features
            learning_rate: Gradient descent step size
            batch_size: Samples per mini-batch
            num_epochs: Passes over the data per training run
            seed: Seed for weight initialization (non-deterministic if None)
        """
        if input_dimension <= 0:
            raise ValueError(f"input_dimension must be positive, got {input_dimension}")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if num_epochs < 0:
            raise ValueError(f"num_epochs must not be negative, got {num_epochs}")

        self._input_dimension = input_dimension
        self._learning_rate = learning_rate
        self._batch_size = batch_size
        self._num_epochs = num_epochs
        self._rng = np.random.default_rng(seed)
        self._weights = np.zeros(input_dimension + 1, dtype=np.float64)

        self.initialize_weights()

    @classmethod
    def from_config(cls, config: ModelConfig, seed: Optional[int] = None) -> "LinearModel":
        """Create a model from a ModelConfig."""
        return cls(
            input_dimension=config.input_dimension,
            learning_rate=config.learning_rate,
            batch_size=config.batch_size,
            num_epochs=config.num_epochs,
            seed=seed,
        )

    @property
    def input_dimension(self) -> int:
        return self._input_dimension

    @property
    def learning_rate(self) -> float:
        return self._learning_rate

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def num_epochs(self) -> int:
        return self._num_epochs

    @property
    def num_weights(self) -> int:
        """Length of the weight vector (bias included)."""
        return self._input_dimension + 1

    @property
    def weights(self) -> np.ndarray:
        """Copy of the current weight vector."""
        return self._weights.copy()

    def initialize_weights(self) -> None:
        """Fill the weights with independent uniform values in [-0.1, 0.1]."""
        self._weights = self._rng.uniform(-0.1, 0.1, self.num_weights)

    def predict(self, features: Sequence[float]) -> float:
        """
        Predict the target for one feature vector.

        Args:
            features: Feature vector of length input_dimension

        Returns:
            bias + sum(features[i] * weights[i + 1])

        Raises:
            DimensionMismatch: If the feature vector has the wrong length
        """
        if len(features) != self._input_dimension:
            raise DimensionMismatch(self._input_dimension, len(features), "features")

        x = np.asarray(features, dtype=np.float64)
        return float(self._weights[0] + x @ self._weights[1:])

    def predict_batch(self, features: np.ndarray) -> np.ndarray:
        """Predict targets for a (n, input_dimension) feature matrix."""
        features = np.asarray(features, dtype=np.float64)
        if features.ndim != 2 or features.shape[1] != self._input_dimension:
            actual = features.shape[-1] if features.ndim else 0
            raise DimensionMismatch(self._input_dimension, actual, "features")
        return self._weights[0] + features @ self._weights[1:]

    def train(self, samples: Sequence[TrainingSample]) -> None:
        """
        Run mini-batch gradient descent on squared-error loss.

        Batches are consecutive slices of ``samples`` in order; the last batch
        may be smaller. Samples are never shuffled, so training is reproducible.

        Args:
            samples: Training samples (left untouched)

        Raises:
            DimensionMismatch: If any sample has the wrong number of features
        """
        if not samples:
            return

        features, targets = samples_to_arrays(samples, self._input_dimension)
        n_samples = len(targets)

        for _ in range(self._num_epochs):
            for start in range(0, n_samples, self._batch_size):
                batch_x = features[start:start + self._batch_size]
                batch_y = targets[start:start + self._batch_size]

                errors = self._weights[0] + batch_x @ self._weights[1:] - batch_y

                gradients = np.empty_like(self._weights)
                gradients[0] = errors.mean()
                gradients[1:] = batch_x.T @ errors / len(errors)

                self._weights = self._weights - self._learning_rate * gradients

    def serialize(self) -> str:
        """Render the weights as ';'-joined decimal text in index order."""
        return format_weights(self._weights)

    def deserialize(self, text: str) -> None:
        """
        Replace the weights with a serialized vector.

        The update is all-or-nothing: on failure the current weights are kept.

        Args:
            text: ';'-joined decimal text

        Raises:
            SerializationError: If a token is invalid or the count is wrong
        """
        self._weights = parse_weights(text, expected_size=self.num_weights)

    def set_weights(self, weights: Sequence[float]) -> None:
        """
        Replace the weight vector.

        Raises:
            DimensionMismatch: If the input is not a flat vector of the current length
        """
        new_weights = np.array(weights, dtype=np.float64)
        if new_weights.ndim != 1:
            raise DimensionMismatch(len(self._weights), new_weights.size,
                                    f"weights of shape {new_weights.shape}")
        if len(new_weights) != len(self._weights):
            raise DimensionMismatch(len(self._weights), len(new_weights), "weights")
        self._weights = new_weights
