"""
Exceptions Module

Error taxonomy for the federated averaging protocol. None of these are fatal
to a coordinator or client: protocol roles catch them at the event-handler
boundary, log them and keep running.
"""

from typing import Optional


class FedAvgError(Exception):
    """Base exception for all protocol errors."""
    pass


class DimensionMismatch(FedAvgError, ValueError):
    """Exception raised when a vector of unexpected length is supplied."""

    def __init__(self, expected: int, actual: int, what: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} has length {actual}, expected {expected}")


class SerializationError(FedAvgError, ValueError):
    """Exception raised for malformed or wrong-cardinality serialized weights."""
    pass


class MessageDecodeError(SerializationError):
    """Exception raised when a payload is not a valid protocol message."""
    pass


class AggregationSkipped(FedAvgError):
    """Exception raised when a round has nothing to aggregate."""
    pass


class StaleOrUnexpectedRound(FedAvgError):
    """Exception raised when an update is tagged with a round that is not current."""

    def __init__(self, round_id: int, current_round: Optional[int]):
        self.round_id = round_id
        self.current_round = current_round
        super().__init__(
            f"Update for round {round_id} but current round is {current_round}"
        )


class UnresolvedEndpoint(FedAvgError):
    """Exception raised when a transport cannot resolve an endpoint name."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Cannot resolve endpoint: {endpoint}")


class ConfigurationError(FedAvgError, ValueError):
    """Exception raised for invalid configuration values."""
    pass


class UnknownClient(FedAvgError):
    """Exception raised when an update comes from a client outside the federation."""

    def __init__(self, client_id: int):
        self.client_id = client_id
        super().__init__(f"Client {client_id} is not part of the federation")
