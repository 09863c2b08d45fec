"""
Closure tracking store port interface.

This module defines the protocol for the durable dedup gate.
"""

from typing import List, Optional, Protocol
from closurewatch.core.models import TrackedEntry

class TrackingStorePort(Protocol):
    """closure 추적 저장소 포트 인터페이스"""

    async def is_new(self, closure_id: str) -> bool:
        ...

    async def record(self, closure_id: str, region: Optional[str], now: Optional[str] = None) -> bool:
        ...

    async def reassign(self, closure_id: str, region: str) -> bool:
        ...

    async def forget(self, closure_id: str) -> bool:
        ...

    async def get(self, closure_id: str) -> Optional[TrackedEntry]:
        ...

    async def entries(self) -> List[TrackedEntry]:
        ...

    async def get_count(self) -> int:
        ...
