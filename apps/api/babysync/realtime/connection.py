"""Per-connection lifecycle for the realtime channel.

A connection moves ``pending-upgrade -> open -> closed``. Each transition is a
method on :class:`ConnectionLifecycle`; calling one from the wrong state is
logged and ignored.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from ..envelopes import EnvelopeError, parse_message
from .rooms import RoomRegistry
from .snapshot import SnapshotProvider

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    PENDING_UPGRADE = "pending-upgrade"
    OPEN = "open"
    CLOSED = "closed"


class Connection:
    """One device's socket plus the identity it connected with."""

    def __init__(self, websocket: Any, family_id: str, device_id: str, *, anonymous: bool = False) -> None:
        self.websocket = websocket
        self.family_id = family_id
        self.device_id = device_id
        self.anonymous = anonymous
        self.state = ConnectionState.PENDING_UPGRADE

    def __repr__(self) -> str:
        return f"Connection(family_id={self.family_id!r}, device_id={self.device_id!r}, state={self.state.value})"

    @property
    def is_open(self) -> bool:
        if self.state is not ConnectionState.OPEN:
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)


class ConnectionLifecycle:
    def __init__(self, rooms: RoomRegistry, snapshots: SnapshotProvider) -> None:
        self.rooms = rooms
        self.snapshots = snapshots

    async def upgrade(
        self,
        websocket: Any,
        family_id: Optional[str],
        device_id: Optional[str] = None,
    ) -> Optional[Connection]:
        """Validate upgrade parameters; refuse the socket when ``familyId`` is missing."""
        if not family_id or not family_id.strip():
            logger.warning("websocket upgrade refused", extra={"reason": "missing familyId"})
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return None

        anonymous = not device_id
        return Connection(
            websocket,
            family_id.strip(),
            device_id or str(uuid4()),
            anonymous=anonymous,
        )

    async def open(self, connection: Connection) -> None:
        if connection.state is not ConnectionState.PENDING_UPGRADE:
            logger.warning("open ignored", extra={"device_id": connection.device_id, "state": connection.state.value})
            return
        await connection.websocket.accept()
        connection.state = ConnectionState.OPEN
        self.rooms.join(connection.family_id, connection)
        logger.info(
            "device joined family",
            extra={
                "family_id": connection.family_id,
                "device_id": connection.device_id,
                "anonymous": connection.anonymous,
            },
        )
        await self.snapshots.send_snapshot(connection)

    async def message(self, connection: Connection, raw: Union[str, bytes]) -> bool:
        """Relay one inbound message to the rest of the room. Returns whether it was relayed."""
        if connection.state is not ConnectionState.OPEN:
            logger.warning(
                "message on non-open connection dropped",
                extra={"device_id": connection.device_id, "state": connection.state.value},
            )
            return False
        try:
            message = parse_message(raw)
        except EnvelopeError as exc:
            logger.warning(
                "malformed message discarded",
                extra={"family_id": connection.family_id, "device_id": connection.device_id, "error": str(exc)},
            )
            return False

        message["senderId"] = connection.device_id
        logger.debug(
            "relaying message",
            extra={"family_id": connection.family_id, "device_id": connection.device_id, "type": message.get("type")},
        )
        await self.rooms.broadcast(connection.family_id, message, exclude=connection)
        return True

    async def close(self, connection: Connection) -> None:
        if connection.state is ConnectionState.CLOSED:
            return
        was_open = connection.state is ConnectionState.OPEN
        connection.state = ConnectionState.CLOSED
        self.rooms.leave(connection.family_id, connection)
        if was_open:
            logger.info(
                "device left family",
                extra={"family_id": connection.family_id, "device_id": connection.device_id},
            )

    async def serve(self, websocket: WebSocket, family_id: Optional[str], device_id: Optional[str]) -> None:
        connection = await self.upgrade(websocket, family_id, device_id)
        if connection is None:
            return
        try:
            await self.open(connection)
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes")
                if raw is None:
                    continue
                await self.message(connection, raw)
        except WebSocketDisconnect:
            pass
        finally:
            await self.close(connection)
