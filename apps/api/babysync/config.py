"""Application configuration utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json."""

    database_path: str = Field(default="./data/babysync.db")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    snapshot_limit: int = Field(default=100, ge=1, description="Max activities pushed in the initial sync")
    send_timeout_seconds: float = Field(default=5.0, gt=0)
    reconnect_delay_seconds: float = Field(default=3.0, ge=0)
    max_reconnect_attempts: int = Field(default=5, ge=0)
    server_url: str = Field(default="http://localhost:3001")

    @property
    def resolved_database_path(self) -> Path:
        """Return the absolute path for the SQLite database file."""
        path = Path(self.database_path)
        if path.is_absolute():
            return path
        return (Path(__file__).resolve().parents[1] / path).resolve()

    @property
    def websocket_url(self) -> str:
        base = self.server_url.rstrip("/")
        if base.startswith("https://"):
            return "wss://" + base[len("https://"):] + "/ws"
        if base.startswith("http://"):
            return "ws://" + base[len("http://"):] + "/ws"
        return base + "/ws"


def _config_path() -> Path:
    override = os.getenv("BABYSYNC_CONFIG")
    if override:
        return Path(override)
    return Path(__file__).resolve().parents[1] / "config.json"


def load_config() -> AppConfig:
    """Load configuration from config.json, falling back to defaults when absent."""

    contents: Dict[str, Any] = {}
    config_file = _config_path()
    if config_file.exists():
        contents = json.loads(config_file.read_text())
    elif os.getenv("BABYSYNC_CONFIG"):
        raise FileNotFoundError(f"BABYSYNC_CONFIG points to a missing file: {config_file}")

    database_path = os.getenv("BABYSYNC_DATABASE_PATH")
    if database_path:
        contents["database_path"] = database_path
    port = os.getenv("PORT")
    if port:
        contents["port"] = int(port)
    return AppConfig(**contents)


CONFIG = load_config()
