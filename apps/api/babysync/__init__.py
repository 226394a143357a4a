"""BabySync: family-shared baby activity logging with realtime sync."""

__version__ = "0.1.0"
