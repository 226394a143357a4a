"""SQLite helpers."""
from __future__ import annotations

import json
import random
import sqlite3
import string
from contextlib import contextmanager
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

from .clock import day_bounds_ms, now_ms
from .config import CONFIG
from .schemas import Activity, ActivityType, Family

_DB_PATH = CONFIG.resolved_database_path

_UNSET = object()

FAMILY_CODE_LENGTH = 6
_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_ATTEMPTS = 8


def generate_family_code() -> str:
    return "".join(random.choices(_CODE_ALPHABET, k=FAMILY_CODE_LENGTH))


def initialize_db() -> None:
    _DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(_DB_PATH) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS families (
                id TEXT PRIMARY KEY,
                code TEXT UNIQUE NOT NULL,
                baby_name TEXT NOT NULL DEFAULT 'Baby',
                created_at INTEGER NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS activities (
                id TEXT PRIMARY KEY,
                family_id TEXT NOT NULL,
                type TEXT NOT NULL,
                data TEXT NOT NULL,
                started_at INTEGER NOT NULL,
                ended_at INTEGER,
                created_by TEXT,
                created_at INTEGER NOT NULL,
                FOREIGN KEY (family_id) REFERENCES families(id)
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_activities_family ON activities(family_id, started_at)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_activities_type ON activities(type)")
        conn.commit()


@contextmanager
def get_connection() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(_DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def _row_to_family(row: sqlite3.Row) -> Family:
    return Family(
        id=row["id"],
        code=row["code"],
        baby_name=row["baby_name"],
        created_at=row["created_at"],
    )


def _row_to_activity(row: sqlite3.Row) -> Activity:
    return Activity(
        id=row["id"],
        family_id=row["family_id"],
        type=ActivityType(row["type"]),
        data=json.loads(row["data"]) if row["data"] else {},
        started_at=row["started_at"],
        ended_at=row["ended_at"],
        created_by=row["created_by"],
        created_at=row["created_at"],
    )


def create_family(baby_name: str = "Baby") -> Family:
    family_id = str(uuid4())
    created_at = now_ms()
    with get_connection() as conn:
        for _ in range(_CODE_ATTEMPTS):
            code = generate_family_code()
            try:
                conn.execute(
                    "INSERT INTO families (id, code, baby_name, created_at) VALUES (?, ?, ?, ?)",
                    (family_id, code, baby_name or "Baby", created_at),
                )
            except sqlite3.IntegrityError:
                continue
            conn.commit()
            return Family(id=family_id, code=code, baby_name=baby_name or "Baby", created_at=created_at)
    raise RuntimeError("Could not allocate a unique family code")


def get_family(family_id: str) -> Optional[Family]:
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM families WHERE id = ?", (family_id,)).fetchone()
    return _row_to_family(row) if row else None


def get_family_by_code(code: str) -> Optional[Family]:
    normalized = (code or "").strip().upper()
    if not normalized:
        return None
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM families WHERE code = ?", (normalized,)).fetchone()
    return _row_to_family(row) if row else None


def create_activity(
    family_id: str,
    activity_type: ActivityType,
    data: Dict[str, Any],
    started_at: int,
    ended_at: Optional[int] = None,
    created_by: Optional[str] = None,
) -> Activity:
    activity = Activity(
        id=str(uuid4()),
        family_id=family_id,
        type=ActivityType(activity_type),
        data=data,
        started_at=started_at,
        ended_at=ended_at,
        created_by=created_by,
        created_at=now_ms(),
    )
    with get_connection() as conn:
        conn.execute(
            """
            INSERT INTO activities (
                id,
                family_id,
                type,
                data,
                started_at,
                ended_at,
                created_by,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                activity.id,
                activity.family_id,
                activity.type.value,
                json.dumps(activity.data),
                activity.started_at,
                activity.ended_at,
                activity.created_by,
                activity.created_at,
            ),
        )
        conn.commit()
    return activity


def get_activity(activity_id: str) -> Activity:
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM activities WHERE id = ?", (activity_id,)).fetchone()
    if not row:
        raise ValueError(f"Activity {activity_id} not found")
    return _row_to_activity(row)


def list_activities(family_id: str, limit: int = 50) -> List[Activity]:
    """Return the most recent activities for a family, newest ``started_at`` first."""
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT * FROM activities
            WHERE family_id = ?
            ORDER BY started_at DESC, created_at DESC
            LIMIT ?
            """,
            (family_id, limit),
        ).fetchall()
    return [_row_to_activity(row) for row in rows]


def list_today_activities(
    family_id: str,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[Activity]:
    start, end = day_bounds_ms(now, tz)
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT * FROM activities
            WHERE family_id = ?
              AND started_at >= ?
              AND started_at < ?
            ORDER BY started_at DESC, created_at DESC
            """,
            (family_id, start, end),
        ).fetchall()
    return [_row_to_activity(row) for row in rows]


def update_activity(activity_id: str, *, data: Any = _UNSET, ended_at: Any = _UNSET) -> Activity:
    assignments: List[str] = []
    params: List[object] = []
    if data is not _UNSET:
        assignments.append("data = ?")
        params.append(json.dumps(data or {}))
    if ended_at is not _UNSET:
        assignments.append("ended_at = ?")
        params.append(ended_at)

    with get_connection() as conn:
        if assignments:
            params.append(activity_id)
            cursor = conn.execute(
                f"UPDATE activities SET {', '.join(assignments)} WHERE id = ?",
                tuple(params),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise ValueError(f"Activity {activity_id} not found")
    return get_activity(activity_id)


def delete_activity(activity_id: str) -> Activity:
    """Delete an activity and return the row as it was before removal."""
    activity = get_activity(activity_id)
    with get_connection() as conn:
        conn.execute("DELETE FROM activities WHERE id = ?", (activity_id,))
        conn.commit()
    return activity
