from __future__ import annotations

import json

import pytest

from babysync.envelopes import (
    ActivityCreated,
    ActivityDeleted,
    ActivityUpdated,
    EnvelopeError,
    SyncEnvelope,
    UnknownEnvelope,
    activity_envelope,
    decode_envelope,
    sync_envelope,
)
from realtime_helpers import make_activity


def test_decode_sync_envelope() -> None:
    activity = make_activity()
    envelope = decode_envelope(sync_envelope([activity]).to_json())

    assert isinstance(envelope, SyncEnvelope)
    assert envelope.data == [activity]
    assert envelope.sender_id is None


@pytest.mark.parametrize(
    "action, expected",
    [("create", ActivityCreated), ("update", ActivityUpdated), ("delete", ActivityDeleted)],
)
def test_decode_activity_envelopes(action, expected) -> None:
    activity = make_activity()
    raw = activity_envelope(action, activity, sender_id="device-a").to_wire()

    envelope = decode_envelope(json.dumps(raw))

    assert isinstance(envelope, expected)
    assert envelope.sender_id == "device-a"
    assert raw["type"] == "activity"
    assert raw["action"] == action


def test_delete_only_needs_an_id() -> None:
    envelope = decode_envelope({"type": "activity", "action": "delete", "data": {"id": "abc"}})

    assert isinstance(envelope, ActivityDeleted)
    assert envelope.activity_id == "abc"


def test_wire_format_keeps_null_end_and_omits_missing_sender() -> None:
    wire = activity_envelope("create", make_activity(ended_at=None)).to_wire()

    assert "senderId" not in wire
    assert wire["data"]["ended_at"] is None
    assert wire["data"]["type"] == "feeding"


def test_unknown_type_is_forward_compatible() -> None:
    envelope = decode_envelope('{"type": "typing", "senderId": "device-a", "data": {"who": "mum"}}')

    assert isinstance(envelope, UnknownEnvelope)
    assert envelope.type == "typing"
    assert envelope.sender_id == "device-a"
    assert envelope.raw["data"] == {"who": "mum"}


def test_unknown_activity_action_is_not_an_error() -> None:
    envelope = decode_envelope({"type": "activity", "action": "archive", "data": {"id": "x"}})
    assert isinstance(envelope, UnknownEnvelope)


@pytest.mark.parametrize(
    "raw",
    [
        "{broken",
        "[]",
        '"just a string"',
        '{"data": []}',
        '{"type": "sync", "data": "nope"}',
        '{"type": "activity", "action": "create", "data": {"id": "only-id"}}',
        '{"type": "activity", "action": "delete", "data": {}}',
    ],
)
def test_malformed_envelopes_raise(raw) -> None:
    with pytest.raises(EnvelopeError):
        decode_envelope(raw)
