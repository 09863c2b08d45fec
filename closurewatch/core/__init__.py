"""
Core domain models and pure functions for closurewatch.

This module contains the domain models and pure business logic
(region resolution, age policy, grouping, rendering, tile selection)
that are independent of external I/O and infrastructure concerns.
"""

from .models import ClosureEvent, ConfigSnapshot, NotificationGroup, Region, UploadBatch
from .region import resolve
from .policy import evaluate, is_eligible
from .grouping import group
from .tiles import pick_server

__all__ = [
    "ClosureEvent",
    "ConfigSnapshot",
    "NotificationGroup",
    "Region",
    "UploadBatch",
    "resolve",
    "evaluate",
    "is_eligible",
    "group",
    "pick_server",
]
