"""Initial-state push for freshly opened connections."""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .. import db
from ..envelopes import sync_envelope
from ..schemas import Activity

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_LIMIT = 100


class SnapshotProvider:
    """Loads the newest activities for a family and sends them as one ``sync`` envelope.

    The cap bounds the payload; devices needing deeper history use the HTTP
    list endpoint. Broadcasts are best-effort, so this snapshot is what brings a
    device back in line after it missed messages while disconnected.
    """

    def __init__(
        self,
        fetch: Optional[Callable[[str, int], List[Activity]]] = None,
        limit: int = DEFAULT_SNAPSHOT_LIMIT,
    ) -> None:
        self._fetch = fetch
        self.limit = limit

    def snapshot(self, family_id: str) -> List[Activity]:
        fetch = self._fetch or db.list_activities
        activities = fetch(family_id, self.limit)
        return sorted(activities, key=lambda activity: activity.started_at, reverse=True)[: self.limit]

    async def send_snapshot(self, connection) -> bool:
        try:
            activities = self.snapshot(connection.family_id)
        except Exception:
            logger.exception(
                "snapshot fetch failed; joining without initial state",
                extra={"family_id": connection.family_id, "device_id": connection.device_id},
            )
            return False

        try:
            await connection.send_text(sync_envelope(activities).to_json())
        except Exception as exc:
            logger.warning(
                "snapshot send failed",
                extra={"family_id": connection.family_id, "device_id": connection.device_id, "error": repr(exc)},
            )
            return False
        logger.info(
            "snapshot sent",
            extra={"family_id": connection.family_id, "device_id": connection.device_id, "count": len(activities)},
        )
        return True
