"""Fan-out of persisted activity changes to a family's live devices."""
from __future__ import annotations

import logging
from typing import Optional, Union

from ..envelopes import ActivityAction, activity_envelope
from ..schemas import Activity
from .rooms import RoomRegistry

logger = logging.getLogger(__name__)


class Broadcaster:
    def __init__(self, rooms: RoomRegistry) -> None:
        self.rooms = rooms

    async def publish(
        self,
        family_id: str,
        action: Union[ActivityAction, str],
        activity: Activity,
        sender_id: Optional[str] = None,
    ) -> int:
        """Announce a change that has already been written to the store.

        ``sender_id`` names the device that made the write so its own
        reconciler can drop the echo. Returns the number of devices reached.
        """
        envelope = activity_envelope(action, activity, sender_id=sender_id)
        delivered = await self.rooms.broadcast(family_id, envelope)
        logger.info(
            "activity published",
            extra={
                "family_id": family_id,
                "activity_id": activity.id,
                "action": ActivityAction(action).value,
                "delivered": delivered,
            },
        )
        return delivered
