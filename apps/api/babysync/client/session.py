"""One device's view of a family: HTTP writes, realtime updates and the local cache."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode
from uuid import uuid4

import websockets

from ..config import CONFIG, AppConfig
from ..schemas import Activity, ActivityType, Family
from .api import MAX_LIST_LIMIT, BabySyncApi
from .reconciler import ActivityReconciler
from .reconnect import ReconnectionController, SyncStatus, Transport

logger = logging.getLogger(__name__)

_UNSET = object()


class SyncSession:
    def __init__(
        self,
        api: BabySyncApi,
        ws_url: str,
        *,
        device_id: Optional[str] = None,
        reconnect_delay: float = 3.0,
        max_reconnect_attempts: int = 5,
        connect: Optional[Callable[[str], Any]] = None,
        tz=None,
    ) -> None:
        self.api = api
        self.ws_url = ws_url
        self.device_id = device_id or str(uuid4())
        self.family: Optional[Family] = None
        self.reconciler = ActivityReconciler(self.device_id, tz=tz)
        self._connect = connect or websockets.connect
        self.controller = ReconnectionController(
            self._open_socket,
            on_message=self.reconciler.apply_raw,
            delay=reconnect_delay,
            max_attempts=max_reconnect_attempts,
        )

    @classmethod
    def from_config(cls, config: AppConfig = CONFIG, **kwargs: Any) -> "SyncSession":
        api = BabySyncApi(config.server_url)
        return cls(
            api,
            config.websocket_url,
            reconnect_delay=config.reconnect_delay_seconds,
            max_reconnect_attempts=config.max_reconnect_attempts,
            **kwargs,
        )

    @property
    def status(self) -> SyncStatus:
        return self.controller.status

    def socket_url(self) -> str:
        if self.family is None:
            raise RuntimeError("No family connected")
        query = urlencode({"familyId": self.family.id, "deviceId": self.device_id})
        return f"{self.ws_url}?{query}"

    async def _open_socket(self) -> Transport:
        return await self._connect(self.socket_url())

    def _require_family(self) -> Family:
        if self.family is None:
            raise RuntimeError("No family connected")
        return self.family

    async def _set_family(self, family: Family) -> None:
        """Switch to ``family``; a different family gets a fresh cache and socket."""
        if self.family is None or self.family.id == family.id:
            self.family = family
            return
        was_live = self.controller.status is not SyncStatus.DISCONNECTED
        await self.controller.disconnect()
        self.reconciler.clear()
        self.family = family
        if was_live:
            await self.controller.connect()

    async def create_family(self, baby_name: str = "Baby") -> Family:
        family = await self.api.create_family(baby_name)
        await self._set_family(family)
        return family

    async def join_family(self, code: str) -> Family:
        family = await self.api.join_family(code)
        await self._set_family(family)
        return family

    async def refresh(self, limit: int = MAX_LIST_LIMIT) -> None:
        """Reload the cache over HTTP, for history beyond the realtime snapshot."""
        family = self._require_family()
        activities = await self.api.list_activities(family.id, limit=limit)
        self.reconciler.replace_all(activities)

    async def add_activity(
        self,
        activity_type: ActivityType,
        data: Dict[str, Any],
        *,
        started_at: Optional[int] = None,
        ended_at: Optional[int] = None,
    ) -> Activity:
        family = self._require_family()
        activity = await self.api.add_activity(
            family.id,
            activity_type,
            data,
            started_at=started_at,
            ended_at=ended_at,
            created_by=self.device_id,
        )
        self.reconciler.add_local(activity)
        return activity

    async def update_activity(
        self,
        activity_id: str,
        *,
        data: Optional[Dict[str, Any]] = None,
        ended_at: Any = _UNSET,
    ) -> Activity:
        updates: Dict[str, Any] = {}
        if data is not None:
            updates["data"] = data
        if ended_at is not _UNSET:
            updates["endedAt"] = ended_at
        activity = await self.api.update_activity(activity_id, updates, device_id=self.device_id)
        if not self.reconciler.update_local(activity.id, {"data": activity.data, "ended_at": activity.ended_at}):
            self.reconciler.add_local(activity)
        return activity

    async def delete_activity(self, activity_id: str) -> None:
        await self.api.delete_activity(activity_id, device_id=self.device_id)
        self.reconciler.remove_local(activity_id)

    async def connect(self) -> bool:
        if self.family is None:
            logger.info("no family id, skipping connection", extra={"device_id": self.device_id})
            return False
        return await self.controller.connect()

    async def disconnect(self) -> None:
        await self.controller.disconnect()

    async def send_message(self, message_type: str, data: Any) -> bool:
        return await self.controller.send({"type": message_type, "data": data})

    async def clear_family(self) -> None:
        await self.disconnect()
        self.family = None
        self.reconciler.clear()

    async def aclose(self) -> None:
        await self.disconnect()
        await self.api.aclose()
