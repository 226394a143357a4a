"""Realtime sync: family rooms, connection lifecycle, snapshots and fan-out."""
from .broadcaster import Broadcaster
from .connection import Connection, ConnectionLifecycle, ConnectionState
from .rooms import RoomRegistry
from .snapshot import SnapshotProvider

__all__ = [
    "Broadcaster",
    "Connection",
    "ConnectionLifecycle",
    "ConnectionState",
    "RoomRegistry",
    "SnapshotProvider",
]
