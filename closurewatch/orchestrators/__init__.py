"""
Orchestrators for closurewatch.

This module contains the orchestrators that coordinate
the flow between ports and adapters.
"""
from .dispatcher import NotificationDispatcher
from .enricher import FeatureEnricher
from .pipeline import ClosurePipeline

__all__ = ["NotificationDispatcher", "FeatureEnricher", "ClosurePipeline"]
