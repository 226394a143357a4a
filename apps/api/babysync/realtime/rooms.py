"""Family rooms: which live connections belong to which family."""
from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set, Union

logger = logging.getLogger(__name__)


class RoomMember(Protocol):
    device_id: str

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...


def serialize_message(message: Union[Mapping[str, Any], Any]) -> str:
    if hasattr(message, "to_json"):
        return message.to_json()
    return json.dumps(message)


class RoomRegistry:
    """In-memory map of family id to the set of connections currently in its room.

    Rooms are created on first join and dropped when the last member leaves.
    Membership changes are guarded by a lock; broadcasts iterate a copy taken
    under that lock, so a member leaving mid-broadcast is never half-removed and
    a member joining mid-broadcast simply waits for the next message.
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self._rooms: Dict[str, Set[RoomMember]] = {}
        self._lock = threading.Lock()
        self.send_timeout = send_timeout

    def join(self, family_id: str, connection: RoomMember) -> None:
        with self._lock:
            self._rooms.setdefault(family_id, set()).add(connection)
            size = len(self._rooms[family_id])
        logger.info(
            "room join",
            extra={"family_id": family_id, "device_id": connection.device_id, "room_size": size},
        )

    def leave(self, family_id: str, connection: RoomMember) -> None:
        with self._lock:
            room = self._rooms.get(family_id)
            if room is None or connection not in room:
                return
            room.discard(connection)
            size = len(room)
            if not room:
                del self._rooms[family_id]
        logger.info(
            "room leave",
            extra={"family_id": family_id, "device_id": connection.device_id, "room_size": size},
        )

    def members(self, family_id: str) -> List[RoomMember]:
        with self._lock:
            return list(self._rooms.get(family_id, ()))

    def has_room(self, family_id: str) -> bool:
        with self._lock:
            return family_id in self._rooms

    @property
    def room_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    @property
    def connection_count(self) -> int:
        with self._lock:
            return sum(len(room) for room in self._rooms.values())

    async def broadcast(
        self,
        family_id: str,
        message: Union[Mapping[str, Any], Any],
        exclude: Optional[RoomMember] = None,
    ) -> int:
        """Send ``message`` to every open member except ``exclude``.

        Returns the number of members that received it. A missing room is a
        normal state and delivers to nobody.
        """
        targets = [member for member in self.members(family_id) if member is not exclude and member.is_open]
        if not targets:
            return 0

        payload = serialize_message(message)
        results = await asyncio.gather(
            *(self._deliver(member, payload) for member in targets),
            return_exceptions=True,
        )
        delivered = 0
        for member, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "broadcast delivery failed",
                    extra={
                        "family_id": family_id,
                        "device_id": member.device_id,
                        "error": repr(result),
                    },
                )
                continue
            delivered += 1
        return delivered

    async def _deliver(self, member: RoomMember, payload: str) -> None:
        await asyncio.wait_for(member.send_text(payload), timeout=self.send_timeout)
