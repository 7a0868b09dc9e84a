"""
Aggregator Module

Sample-weighted federated averaging of client weight vectors.
"""

from typing import List, Sequence

import numpy as np

from ..exceptions import AggregationSkipped, DimensionMismatch
from ..model import parse_weights
from .round_manager import RoundRecord


def weighted_average(vectors: Sequence[np.ndarray], sample_counts: Sequence[int]) -> np.ndarray:
    """
    Average vectors weighted by sample counts.

    Computes sum(vector_i * n_i / sum(n)) componentwise.

    Args:
        vectors: Equal-length weight vectors
        sample_counts: Number of samples behind each vector

    Returns:
        Averaged vector

    Raises:
        AggregationSkipped: If there are no vectors or the total count is zero
        DimensionMismatch: If the vectors differ in length
    """
    if not vectors:
        raise AggregationSkipped("No models to aggregate")

    total = sum(sample_counts)
    if total == 0:
        raise AggregationSkipped("Total samples count is zero, cannot perform weighted aggregation")

    size = len(vectors[0])
    aggregated = np.zeros(size, dtype=np.float64)

    for vector, count in zip(vectors, sample_counts):
        if len(vector) != size:
            raise DimensionMismatch(size, len(vector), "client weights")
        aggregated += np.asarray(vector, dtype=np.float64) * (count / total)

    return aggregated


class Aggregator:
    """
    Aggregates the updates recorded for a round (FedAvg).

    Attributes:
        num_weights: Length of every weight vector.
    """

    def __init__(self, num_weights: int):
        """
        Initialize the aggregator.

        Args:
            num_weights: Length of the global model's weight vector
        """
        self.num_weights = num_weights

    def aggregate(self, record: RoundRecord) -> np.ndarray:
        """
        Compute the sample-weighted average of a round's client weights.

        Does not touch any model; the caller applies the result.

        Args:
            record: Accumulated updates of the round

        Returns:
            Aggregated weight vector

        Raises:
            AggregationSkipped: If nothing was recorded or the total is zero
            SerializationError: If a recorded weight string is malformed
        """
        if not record.received_models:
            raise AggregationSkipped(
                f"No models received for aggregation in round {record.round_id}"
            )

        client_ids: List[int] = record.contributors
        vectors = [
            parse_weights(record.received_models[client_id], expected_size=self.num_weights)
            for client_id in client_ids
        ]
        counts = [record.samples_per_client[client_id] for client_id in client_ids]

        return weighted_average(vectors, counts)
