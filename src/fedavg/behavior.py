"""
Link Behavior Simulation

Simulates an unreliable network link for the in-memory transport:
- Fixed delivery latency with optional random jitter
- Random payload loss

Nothing is guaranteed to arrive and jitter means nothing is guaranteed to
arrive in order, matching the transport contract the protocol tolerates.
"""

import random
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config import FederationConfig


class LinkBehavior:
    """
    Decides the fate of each payload handed to the simulated network.

    Attributes:
        latency: Base one-way delivery latency in seconds.
        jitter: Maximum extra random latency in seconds.
        loss_probability: Probability that a payload is dropped.
    """

    def __init__(
        self,
        latency: float = 0.01,
        jitter: float = 0.0,
        loss_probability: float = 0.0,
        seed: Optional[int] = None
    ):
        """
        Initialize the link behavior.

        Args:
            latency: Base one-way delivery latency in seconds
            jitter: Maximum extra random latency in seconds
            loss_probability: Probability that a payload is dropped
            seed: Random seed for reproducible loss and jitter
        """
        if latency < 0 or jitter < 0:
            raise ValueError("latency and jitter must not be negative")
        if not 0.0 <= loss_probability <= 1.0:
            raise ValueError(f"loss_probability must be within [0, 1], got {loss_probability}")

        self.latency = latency
        self.jitter = jitter
        self.loss_probability = loss_probability
        self._random = random.Random(seed)

    @classmethod
    def from_config(cls, config: "FederationConfig") -> "LinkBehavior":
        """Create the link behavior described by a federation config."""
        return cls(
            latency=config.latency,
            loss_probability=config.loss_probability,
            seed=config.seed,
        )

    def should_drop(self) -> bool:
        """
        Determine if the next payload is lost.

        Returns:
            True if the payload should be dropped
        """
        if self.loss_probability <= 0.0:
            return False

        return self._random.random() < self.loss_probability

    def delivery_delay(self) -> float:
        """
        Get the delivery delay for the next payload.

        Returns:
            Delay in seconds
        """
        if self.jitter <= 0.0:
            return self.latency

        return self.latency + self._random.uniform(0.0, self.jitter)
