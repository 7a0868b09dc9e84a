"""
Messages Module

Wire messages exchanged between the coordinator and the clients.

The protocol has exactly two message kinds, modelled as a closed tagged
union discriminated by the ``type`` field and carried as JSON bytes.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .exceptions import MessageDecodeError


GLOBAL_UPDATE = "GLOBAL_UPDATE"
LOCAL_UPDATE = "LOCAL_UPDATE"

# Sender id reserved for the coordinator
COORDINATOR_SENDER_ID = -1


class GlobalUpdate(BaseModel):
    """
    Downlink message from the coordinator to every client.
    Carries the global model for the round.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["GLOBAL_UPDATE"] = GLOBAL_UPDATE
    round_id: int
    sender_id: Literal[-1] = COORDINATOR_SENDER_ID
    weights: str


class LocalUpdate(BaseModel):
    """
    Uplink message from one client to the coordinator.
    Carries the locally trained weights and the size of the local data set.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["LOCAL_UPDATE"] = LOCAL_UPDATE
    round_id: int
    sender_id: int = Field(ge=0)
    weights: str
    sample_count: int = Field(ge=0)
    accuracy: float = 0.0  # 0 or negative means "not reported"

    @property
    def client_id(self) -> int:
        return self.sender_id

    @property
    def has_accuracy(self) -> bool:
        return self.accuracy > 0


Message = Annotated[Union[GlobalUpdate, LocalUpdate], Field(discriminator="type")]

_message_adapter = TypeAdapter(Message)


def encode_message(message: Union[GlobalUpdate, LocalUpdate]) -> bytes:
    """
    Encode a message as JSON bytes for the transport.

    Args:
        message: GlobalUpdate or LocalUpdate

    Returns:
        Opaque payload bytes
    """
    return message.model_dump_json().encode("utf-8")


def decode_message(payload: bytes) -> Union[GlobalUpdate, LocalUpdate]:
    """
    Decode payload bytes into a message.

    Args:
        payload: Bytes produced by encode_message

    Returns:
        The GlobalUpdate or LocalUpdate variant named by the payload tag

    Raises:
        MessageDecodeError: If the payload is not a valid message
    """
    try:
        return _message_adapter.validate_json(payload)
    except ValidationError as e:
        raise MessageDecodeError(
            f"Invalid message payload ({e.error_count()} error(s)): {e.errors()[0]['msg']}"
        ) from e
