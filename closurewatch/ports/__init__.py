"""
Port interfaces for closurewatch hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external adapters.
"""

from .ingest import ScanSourcePort
from .dispatch import WebhookTransportPort
from .features import FeatureSourcePort, FeatureStorePort
from .tracking import TrackingStorePort

__all__ = [
    "ScanSourcePort",
    "WebhookTransportPort",
    "FeatureSourcePort",
    "FeatureStorePort",
    "TrackingStorePort",
]
