"""Per-device activity cache fed by realtime envelopes."""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..clock import day_bounds_ms
from ..envelopes import (
    ActivityCreated,
    ActivityDeleted,
    ActivityUpdated,
    Envelope,
    EnvelopeError,
    SyncEnvelope,
    decode_envelope,
)
from ..schemas import Activity, ActivityType, DailyStats

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000

Listener = Callable[["ActivityReconciler"], None]


def compute_stats(activities: Iterable[Activity]) -> DailyStats:
    """Counts of feeds and diapers plus hours slept.

    Only sleeps with both bounds count toward the total; an open session adds
    nothing until it is closed.
    """
    feeding = diaper = 0
    sleep_ms = 0
    for activity in activities:
        if activity.type is ActivityType.FEEDING:
            feeding += 1
        elif activity.type is ActivityType.DIAPER:
            diaper += 1
        elif activity.type is ActivityType.SLEEP and activity.duration_ms is not None:
            sleep_ms += activity.duration_ms
    return DailyStats(feeding_count=feeding, sleep_hours=round(sleep_ms / MS_PER_HOUR, 1), diaper_count=diaper)


class ActivityReconciler:
    """Local, ordered copy of a family's activities.

    Entries are kept newest-arrival first and indexed by id, so there is never
    more than one entry per activity. Envelopes sent by this device come back
    over the broadcast channel and are dropped on sight.

    An ``update`` for an id this cache has not seen yet is dropped. Nothing is
    buffered for a later ``create``; the next ``sync`` snapshot is what repairs
    such gaps.
    """

    def __init__(
        self,
        device_id: str,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.device_id = device_id
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._entries: "OrderedDict[str, Activity]" = OrderedDict()
        self._listeners: List[Listener] = []
        self._version = 0
        self._today_cache: Optional[Tuple[int, int, List[Activity]]] = None
        self._stats_cache: Optional[Tuple[int, int, DailyStats]] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, activity_id: object) -> bool:
        return activity_id in self._entries

    @property
    def activities(self) -> List[Activity]:
        return list(self._entries.values())

    @property
    def version(self) -> int:
        return self._version

    def get(self, activity_id: str) -> Optional[Activity]:
        return self._entries.get(activity_id)

    # Inbound envelopes

    def apply_raw(self, raw: Union[str, bytes, Dict[str, Any]]) -> bool:
        try:
            envelope = decode_envelope(raw)
        except EnvelopeError as exc:
            logger.warning("undecodable envelope ignored", extra={"device_id": self.device_id, "error": str(exc)})
            return False
        return self.apply(envelope)

    def apply(self, envelope: Envelope) -> bool:
        """Merge one envelope into the cache. Returns whether the cache changed."""
        if envelope.sender_id is not None and envelope.sender_id == self.device_id:
            return False

        if isinstance(envelope, SyncEnvelope):
            self._replace_all(envelope.data)
        elif isinstance(envelope, ActivityCreated):
            if envelope.data.id in self._entries:
                return False
            self._prepend(envelope.data)
        elif isinstance(envelope, ActivityUpdated):
            if envelope.data.id not in self._entries:
                logger.debug(
                    "update for unknown activity dropped",
                    extra={"device_id": self.device_id, "activity_id": envelope.data.id},
                )
                return False
            self._entries[envelope.data.id] = envelope.data
        elif isinstance(envelope, ActivityDeleted):
            if self._entries.pop(envelope.activity_id, None) is None:
                return False
        else:
            return False

        self._changed()
        return True

    # Local writes, applied after the HTTP call succeeded

    def add_local(self, activity: Activity) -> None:
        if activity.id in self._entries:
            self._entries[activity.id] = activity
        else:
            self._prepend(activity)
        self._changed()

    def update_local(self, activity_id: str, changes: Dict[str, Any]) -> bool:
        current = self._entries.get(activity_id)
        if current is None:
            return False
        self._entries[activity_id] = current.model_copy(update=changes)
        self._changed()
        return True

    def remove_local(self, activity_id: str) -> bool:
        if self._entries.pop(activity_id, None) is None:
            return False
        self._changed()
        return True

    def replace_all(self, activities: Iterable[Activity]) -> None:
        self._replace_all(activities)
        self._changed()

    def clear(self) -> None:
        self._entries.clear()
        self._changed()

    # Derived views

    def today(self) -> List[Activity]:
        start, end = day_bounds_ms(self._clock(), self.tz)
        cached = self._today_cache
        if cached and cached[0] == self._version and cached[1] == start:
            return list(cached[2])
        view = [activity for activity in self._entries.values() if start <= activity.started_at < end]
        self._today_cache = (self._version, start, view)
        return list(view)

    def stats(self) -> DailyStats:
        start, _ = day_bounds_ms(self._clock(), self.tz)
        cached = self._stats_cache
        if cached and cached[0] == self._version and cached[1] == start:
            return cached[2]
        stats = compute_stats(self.today())
        self._stats_cache = (self._version, start, stats)
        return stats

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every change; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _prepend(self, activity: Activity) -> None:
        self._entries[activity.id] = activity
        self._entries.move_to_end(activity.id, last=False)

    def _replace_all(self, activities: Iterable[Activity]) -> None:
        self._entries = OrderedDict()
        for activity in activities:
            self._entries.setdefault(activity.id, activity)

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("activity listener failed", extra={"device_id": self.device_id})
