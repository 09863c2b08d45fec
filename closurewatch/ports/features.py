"""
Feature lookup port interfaces.

This module defines the protocols for the upstream Features source
and the persistent feature cache.
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple
from closurewatch.core.features import FeatureCache

class FeatureSourcePort(Protocol):
    """업스트림 피처 조회 포트 인터페이스"""

    async def fetch_features(self, bbox: Tuple[float, float, float, float],
                             env: Optional[str] = None) -> Dict[str, Any]:
        """
        경계 상자 안의 피처를 한 번에 조회합니다.

        Args:
            bbox: (lon1, lat1, lon2, lat2)
            env: 리전 env 태그

        Returns:
            users/segments/streets/cities/states/countries 섹션을 가진 응답

        Raises:
            UpstreamAuthError: 401/403 응답
            UpstreamError: 그 밖의 실패
        """
        ...

class FeatureStorePort(Protocol):
    """피처 캐시 저장소 포트 인터페이스"""

    async def load(self) -> FeatureCache:
        ...

    async def save(self, added: Dict[str, List[Any]]) -> int:
        ...
