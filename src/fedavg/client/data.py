"""
Synthetic training data for clients.

Each client draws its own private samples from one shared linear ground
truth with Gaussian noise, so the federation has a common model to find.
"""

from typing import Tuple

import numpy as np

from ..model import TrainingSample


TRUE_WEIGHTS = (0.5, -1.2, 0.8, 2.0, -0.7)
TRUE_BIAS = 1.0


def true_weights(input_dimension: int) -> np.ndarray:
    """Ground-truth feature weights, cycling TRUE_WEIGHTS for larger dimensions."""
    return np.array(
        [TRUE_WEIGHTS[i % len(TRUE_WEIGHTS)] for i in range(input_dimension)],
        dtype=np.float64
    )


def generate_synthetic_data(
    client_id: int,
    input_dimension: int = 5,
    base_samples: int = 100,
    samples_per_client: int = 20,
    feature_range: float = 5.0,
    noise_std: float = 0.5,
    seed_offset: int = 1000
) -> Tuple[TrainingSample, ...]:
    """
    Generate a client's private training set.

    Client ``i`` gets ``base_samples + samples_per_client * i`` samples, seeded
    by ``i + seed_offset`` so every client sees different but reproducible data.

    Args:
        client_id: Identifier of the client
        input_dimension: Number of features per sample
        base_samples: Samples for client 0
        samples_per_client: Extra samples per client id
        feature_range: Features are uniform in [-feature_range, feature_range]
        noise_std: Standard deviation of the target noise
        seed_offset: Added to client_id to form the seed

    Returns:
        Tuple of immutable samples
    """
    num_samples = base_samples + samples_per_client * client_id
    rng = np.random.default_rng(client_id + seed_offset)

    features = rng.uniform(-feature_range, feature_range, size=(num_samples, input_dimension))
    targets = TRUE_BIAS + features @ true_weights(input_dimension)
    targets = targets + rng.normal(0.0, noise_std, size=num_samples)

    return tuple(
        TrainingSample(features=tuple(float(x) for x in row), target=float(y))
        for row, y in zip(features, targets)
    )
