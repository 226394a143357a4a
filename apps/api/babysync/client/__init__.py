"""Device-side sync: local cache, reconnection and the HTTP client."""
from .api import ApiError, BabySyncApi
from .reconciler import ActivityReconciler, compute_stats
from .reconnect import ReconnectionController, SyncStatus
from .session import SyncSession

__all__ = [
    "ActivityReconciler",
    "ApiError",
    "BabySyncApi",
    "ReconnectionController",
    "SyncSession",
    "SyncStatus",
    "compute_stats",
]
