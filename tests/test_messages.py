import json

import pytest
from pydantic import ValidationError

from fedavg.exceptions import MessageDecodeError, SerializationError
from fedavg.messages import (
    COORDINATOR_SENDER_ID,
    GlobalUpdate,
    LocalUpdate,
    decode_message,
    encode_message,
)


def test_global_update_defaults():
    message = GlobalUpdate(round_id=3, weights="0.0;1.0")

    assert message.type == "GLOBAL_UPDATE"
    assert message.sender_id == COORDINATOR_SENDER_ID


def test_global_update_rejects_client_sender():
    with pytest.raises(ValidationError):
        GlobalUpdate(round_id=1, sender_id=2, weights="0.0")


def test_local_update_requires_client_sender():
    with pytest.raises(ValidationError):
        LocalUpdate(round_id=1, sender_id=-1, weights="0.0", sample_count=1)

    with pytest.raises(ValidationError):
        LocalUpdate(round_id=1, sender_id=0, weights="0.0", sample_count=-5)


def test_local_update_accuracy_optional():
    without = LocalUpdate(round_id=1, sender_id=2, weights="0.0", sample_count=10)
    with_accuracy = LocalUpdate(
        round_id=1, sender_id=2, weights="0.0", sample_count=10, accuracy=0.8
    )

    assert without.client_id == 2
    assert not without.has_accuracy
    assert with_accuracy.has_accuracy


def test_messages_are_immutable():
    message = GlobalUpdate(round_id=1, weights="0.0")

    with pytest.raises(ValidationError):
        message.round_id = 2


def test_encode_decode_local_update():
    message = LocalUpdate(
        round_id=4, sender_id=1, weights="0.25;-1.5", sample_count=120, accuracy=0.5
    )

    payload = encode_message(message)
    decoded = decode_message(payload)

    assert isinstance(payload, bytes)
    assert json.loads(payload)["type"] == "LOCAL_UPDATE"
    assert isinstance(decoded, LocalUpdate)
    assert decoded == message


def test_decode_dispatches_on_type_tag():
    payload = json.dumps({"type": "GLOBAL_UPDATE", "round_id": 2, "weights": "1.0"})

    decoded = decode_message(payload.encode())

    assert isinstance(decoded, GlobalUpdate)
    assert decoded.round_id == 2


@pytest.mark.parametrize("payload", [
    b"not json",
    b'{"type": "HEARTBEAT", "round_id": 1}',
    b'{"type": "LOCAL_UPDATE", "round_id": 1, "sender_id": 0}',
])
def test_decode_rejects_invalid_payloads(payload):
    with pytest.raises(MessageDecodeError):
        decode_message(payload)


def test_decode_error_is_serialization_error():
    with pytest.raises(SerializationError):
        decode_message(b"{}")
