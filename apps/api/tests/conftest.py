from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Point the store at a scratch file before babysync.config is imported.
os.environ.setdefault("BABYSYNC_DATABASE_PATH", str(Path(tempfile.mkdtemp(prefix="babysync-tests-")) / "test.db"))

import pytest  # noqa: E402

from babysync.db import get_connection, initialize_db  # noqa: E402


def reset_state() -> None:
    initialize_db()
    with get_connection() as conn:
        for table in ["activities", "families"]:
            conn.execute(f"DELETE FROM {table}")
        conn.commit()


@pytest.fixture(autouse=True)
def clean_store() -> None:
    reset_state()
