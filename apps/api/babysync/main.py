from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CONFIG, AppConfig
from .clock import now_ms
from .db import initialize_db
from .realtime import Broadcaster, ConnectionLifecycle, RoomRegistry, SnapshotProvider
from .routes import activities as activity_routes
from .routes import families as family_routes
from .routes import realtime as realtime_routes


def create_app(config: AppConfig = CONFIG, rooms: Optional[RoomRegistry] = None) -> FastAPI:
    """Build the API with its own room registry so instances never share live connections."""

    initialize_db()

    app = FastAPI(
        title="BabySync API",
        version="0.1.0",
        description="Family-shared feeding, sleep and diaper log with realtime sync",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=False,
    )

    registry = rooms or RoomRegistry(send_timeout=config.send_timeout_seconds)
    app.state.rooms = registry
    app.state.broadcaster = Broadcaster(registry)
    app.state.lifecycle = ConnectionLifecycle(registry, SnapshotProvider(limit=config.snapshot_limit))

    app.include_router(family_routes.router)
    app.include_router(activity_routes.router)
    app.include_router(realtime_routes.router)

    @app.get("/api/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "timestamp": now_ms(),
            "rooms": registry.room_count,
            "connections": registry.connection_count,
        }

    return app


app = create_app()
