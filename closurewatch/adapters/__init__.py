"""
Adapters for closurewatch hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import SQLiteTrackingStore, SQLiteFeatureStore
from .config.json_catalog import ConfigStore
from .upstream.client import FeaturesClient
from .webhooks.client import WebhookClient

__all__ = ["SQLiteTrackingStore", "SQLiteFeatureStore", "ConfigStore", "FeaturesClient", "WebhookClient"]
