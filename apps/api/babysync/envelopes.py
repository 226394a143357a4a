"""Wire envelopes exchanged over the realtime channel.

Every message is a JSON object with a ``type`` tag. Two tags are understood:

* ``sync``: full-replace snapshot, ``{"type": "sync", "data": [Activity, ...]}``
* ``activity``: single change, ``{"type": "activity", "action": "create" | "update" | "delete",
  "data": Activity, "senderId": device_id}``

Anything else decodes to :class:`UnknownEnvelope` so newer servers can add
message types without breaking older clients.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .schemas import Activity


class EnvelopeError(ValueError):
    """Raised when an inbound message cannot be decoded."""


class EnvelopeType(str, Enum):
    SYNC = "sync"
    ACTIVITY = "activity"


class ActivityAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class _Envelope(BaseModel):
    sender_id: Optional[str] = Field(default=None, alias="senderId")

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True)
        if payload.get("senderId") is None:
            payload.pop("senderId", None)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


class SyncEnvelope(_Envelope):
    type: Literal["sync"] = "sync"
    data: List[Activity] = Field(default_factory=list)


class ActivityRef(BaseModel):
    """Minimal activity reference; deletes only need the id."""

    model_config = ConfigDict(extra="allow")

    id: str


class ActivityCreated(_Envelope):
    type: Literal["activity"] = "activity"
    action: Literal["create"] = "create"
    data: Activity


class ActivityUpdated(_Envelope):
    type: Literal["activity"] = "activity"
    action: Literal["update"] = "update"
    data: Activity


class ActivityDeleted(_Envelope):
    type: Literal["activity"] = "activity"
    action: Literal["delete"] = "delete"
    data: ActivityRef

    @property
    def activity_id(self) -> str:
        return self.data.id


class UnknownEnvelope(_Envelope):
    type: str
    raw: Dict[str, Any] = Field(default_factory=dict, exclude=True)


Envelope = Union[SyncEnvelope, ActivityCreated, ActivityUpdated, ActivityDeleted, UnknownEnvelope]

_ACTIVITY_MODELS = {
    ActivityAction.CREATE.value: ActivityCreated,
    ActivityAction.UPDATE.value: ActivityUpdated,
    ActivityAction.DELETE.value: ActivityDeleted,
}


def parse_message(raw: Union[str, bytes]) -> Dict[str, Any]:
    """Parse raw text into a JSON object, raising :class:`EnvelopeError` otherwise."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise EnvelopeError(f"Invalid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise EnvelopeError(f"Expected a JSON object, got {type(message).__name__}")
    return message


def decode_envelope(raw: Union[str, bytes, Dict[str, Any]]) -> Envelope:
    message = raw if isinstance(raw, dict) else parse_message(raw)
    kind = message.get("type")
    try:
        if kind == EnvelopeType.SYNC.value:
            if not isinstance(message.get("data"), list):
                raise EnvelopeError("sync envelope requires a list in 'data'")
            return SyncEnvelope.model_validate(message)
        if kind == EnvelopeType.ACTIVITY.value:
            model = _ACTIVITY_MODELS.get(message.get("action"))
            if model is None:
                return UnknownEnvelope(type=str(kind), senderId=message.get("senderId"), raw=message)
            return model.model_validate(message)
    except ValidationError as exc:
        raise EnvelopeError(f"Malformed {kind} envelope: {exc.error_count()} error(s)") from exc
    if not isinstance(kind, str):
        raise EnvelopeError("Envelope is missing a string 'type'")
    sender = message.get("senderId")
    return UnknownEnvelope(type=kind, senderId=sender if isinstance(sender, str) else None, raw=message)


def sync_envelope(activities: Iterable[Activity]) -> SyncEnvelope:
    return SyncEnvelope(data=list(activities))


def activity_envelope(
    action: Union[ActivityAction, str],
    activity: Activity,
    sender_id: Optional[str] = None,
) -> Envelope:
    action_value = ActivityAction(action).value
    if action_value == ActivityAction.DELETE.value:
        return ActivityDeleted(data=ActivityRef(**activity.model_dump(mode="json")), senderId=sender_id)
    model = _ACTIVITY_MODELS[action_value]
    return model(data=activity, senderId=sender_id)
