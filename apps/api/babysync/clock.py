"""Epoch-millisecond time helpers shared by the server and the sync client."""
from __future__ import annotations

import time
from datetime import datetime, timedelta, tzinfo
from typing import Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def day_bounds_ms(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> tuple[int, int]:
    """Epoch ms bounds ``[midnight, next midnight)`` of the local day containing ``now``."""
    current = now or datetime.now(tz)
    if tz is not None:
        current = current.astimezone(tz)
    elif current.tzinfo is None:
        current = current.astimezone()
    midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
    # Calendar step, not +24h: DST days are 23 or 25 hours long.
    next_midnight = midnight + timedelta(days=1)
    return int(midnight.timestamp() * 1000), int(next_midnight.timestamp() * 1000)
