"""
Round Manager Module

Tracks round progression and the per-round accumulation of client updates.
"""

from enum import Enum
from typing import Dict, List, Optional, Set
from dataclasses import dataclass, field

from ..exceptions import StaleOrUnexpectedRound, UnknownClient


class CoordinatorState(Enum):
    """Coordinator state enumeration."""
    IDLE = "IDLE"
    ROUND_ACTIVE = "ROUND_ACTIVE"
    COMPLETED = "COMPLETED"


@dataclass
class RoundRecord:
    """
    Updates accumulated for one round.

    The two mappings always share the same key set.
    """
    round_id: int
    received_models: Dict[int, str] = field(default_factory=dict)
    samples_per_client: Dict[int, int] = field(default_factory=dict)
    aggregation_triggered: bool = False

    @property
    def num_updates(self) -> int:
        return len(self.received_models)

    @property
    def total_samples(self) -> int:
        return sum(self.samples_per_client.values())

    @property
    def contributors(self) -> List[int]:
        return sorted(self.received_models)

    def record(self, client_id: int, weights: str, sample_count: int) -> bool:
        """
        Store a client's update, replacing any earlier one from that client.

        Returns:
            True if the client had not contributed to this round yet
        """
        is_new = client_id not in self.received_models
        self.received_models[client_id] = weights
        self.samples_per_client[client_id] = sample_count
        return is_new


class RoundManager:
    """
    Manages rounds for a fixed client set.

    Rounds run 1..max_rounds. Each round starts with an empty RoundRecord;
    updates are only accepted for the current round.
    """

    def __init__(self, num_clients: int, max_rounds: int):
        """
        Initialize the round manager.

        Args:
            num_clients: Total number of clients in the federation
            max_rounds: Number of rounds before completion
        """
        self.client_ids: Set[int] = set(range(num_clients))
        self.max_rounds = max_rounds
        self.state = CoordinatorState.IDLE
        self.current_round = 0
        self.rounds: Dict[int, RoundRecord] = {}

    @property
    def num_clients(self) -> int:
        return len(self.client_ids)

    @property
    def record(self) -> Optional[RoundRecord]:
        """Accumulation record of the current round."""
        return self.rounds.get(self.current_round)

    def start_next_round(self) -> Optional[int]:
        """
        Advance to the next round with a fresh accumulation record.

        Returns:
            The new round id, or None once max_rounds has been run (the
            manager is then COMPLETED)
        """
        if self.state == CoordinatorState.COMPLETED:
            return None

        if self.current_round >= self.max_rounds:
            self.state = CoordinatorState.COMPLETED
            return None

        self.current_round += 1
        self.state = CoordinatorState.ROUND_ACTIVE
        self.rounds[self.current_round] = RoundRecord(round_id=self.current_round)
        return self.current_round

    def validate_update(self, client_id: int, round_id: int) -> None:
        """
        Check that an update may be recorded.

        Args:
            client_id: Identifier of the sending client
            round_id: Round the update was produced for

        Raises:
            UnknownClient: If the client is not part of the federation
            StaleOrUnexpectedRound: If round_id is not the active round
        """
        if client_id not in self.client_ids:
            raise UnknownClient(client_id)

        if self.state != CoordinatorState.ROUND_ACTIVE or round_id != self.current_round:
            raise StaleOrUnexpectedRound(round_id, self.current_round)

    def add_update(
        self,
        client_id: int,
        round_id: int,
        weights: str,
        sample_count: int
    ) -> bool:
        """
        Record a client update for the current round.

        Args:
            client_id: Identifier of the sending client
            round_id: Round the update was produced for
            weights: Serialized client weights
            sample_count: Size of the client's training set

        Returns:
            True exactly once per round: when the number of distinct
            contributors first reaches the client count

        Raises:
            UnknownClient: If the client is not part of the federation
            StaleOrUnexpectedRound: If round_id is not the active round
        """
        self.validate_update(client_id, round_id)

        record = self.rounds[self.current_round]
        record.record(client_id, weights, sample_count)

        if record.aggregation_triggered or record.num_updates != self.num_clients:
            return False

        record.aggregation_triggered = True
        return True

    def get_round_status(self, round_id: int) -> Optional[Dict]:
        """
        Get the status of a round.

        Args:
            round_id: Identifier of the round

        Returns:
            Dictionary with round status information, None if round doesn't exist
        """
        record = self.rounds.get(round_id)
        if record is None:
            return None

        return {
            "round_id": record.round_id,
            "active": self.state == CoordinatorState.ROUND_ACTIVE and round_id == self.current_round,
            "contributors": record.contributors,
            "samples_per_client": dict(record.samples_per_client),
            "total_clients": self.num_clients,
            "total_updates": record.num_updates,
            "total_samples": record.total_samples,
            "aggregation_triggered": record.aggregation_triggered,
        }
