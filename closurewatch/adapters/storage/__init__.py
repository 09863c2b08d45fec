"""
Storage adapters for closurewatch hexagonal architecture.

This module contains the SQLite-backed persistence adapters: the
closure tracking (dedup) store and the feature cache store.
"""

from .sqlite_tracking import SQLiteTrackingStore
from .sqlite_features import SQLiteFeatureStore

__all__ = ["SQLiteTrackingStore", "SQLiteFeatureStore"]
