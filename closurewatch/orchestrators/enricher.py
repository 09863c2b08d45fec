"""
Feature enrichment for closurewatch.

This module resolves terse identifiers on a closure (numeric user id,
segment -> street -> city -> state/country) into display names using
the feature cache, issuing at most one upstream Features request per
closure on a cache miss.
"""

import asyncio
import time
from typing import Optional, Set, Tuple

import aiohttp

from closurewatch.common.geo import bbox_around
from closurewatch.core.features import FeatureCache, hydrate, resolve_chain
from closurewatch.core.models import ClosureEvent
from closurewatch.errors import UpstreamAuthError, UpstreamError
from closurewatch.observability import metrics
from closurewatch.observability.logging_setup import get_logger
from closurewatch.ports.features import FeatureSourcePort, FeatureStorePort

log = get_logger("closurewatch.enrichment")

UNKNOWN = "Unknown"


def needs_lookup(event: ClosureEvent) -> bool:
    """사용자 id가 숫자이거나 위치/도로 유형이 비어 있으면 조회가 필요합니다."""
    return (
        event.created_by.isdigit()
        or event.location is None
        or (event.road_type is None and event.road_type_enum is None)
    )


class FeatureEnricher:
    """피처 캐시 기반 closure 보강기"""

    def __init__(self,
                 source: FeatureSourcePort,
                 store: Optional[FeatureStorePort] = None,
                 cache: Optional[FeatureCache] = None,
                 *,
                 bbox_padding: float = 0.005):
        """
        초기화합니다.

        Args:
            source: 업스트림 Features 조회 포트
            store: 캐시 영속화 포트 (None이면 메모리 전용)
            cache: 초기 캐시 스냅샷
            bbox_padding: 조회 경계 상자 여유 (도)
        """
        self.source = source
        self.store = store
        self.cache = cache or FeatureCache()
        self.bbox_padding = bbox_padding
        # 이미 한 번 조회했지만 체인이 끝까지 채워지지 않은 세그먼트/사용자
        self._fetched_segments: Set[Tuple[Optional[str], str]] = set()
        self._missed_users: Set[Tuple[Optional[str], str]] = set()

    async def load(self) -> None:
        """저장소에서 캐시를 불러옵니다."""
        if self.store is not None:
            self.cache = await self.store.load()
        metrics.feature_cache_size.set(self.cache.size())

    async def _refresh(self, event: ClosureEvent, env: Optional[str]) -> bool:
        """
        closure 좌표 주변을 한 번 조회하여 캐시에 병합합니다.

        Returns:
            조회에 성공했으면 True

        Raises:
            UpstreamAuthError: 업스트림 인증 거부
        """
        bbox = bbox_around(event.lat, event.lon, self.bbox_padding)
        metrics.enrichment_fetches.inc()
        t0 = time.perf_counter()
        try:
            payload = await self.source.fetch_features(bbox, env)
        except UpstreamAuthError:
            raise
        except (UpstreamError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning(f"피처 조회 실패, Unknown으로 처리 closure:{event.id} error:{e}")
            return False
        finally:
            metrics.enrichment_fetch_seconds.observe(time.perf_counter() - t0)

        self.cache, added = hydrate(self.cache, payload)
        if added:
            if self.store is not None:
                await self.store.save(added)
            metrics.feature_cache_size.set(self.cache.size())
            log.debug(f"피처 캐시 병합 closure:{event.id} added:{sum(len(v) for v in added.values())}")
        return True

    def _should_fetch(self, complete: bool, user_id: Optional[str], segment_id: str, env: Optional[str]) -> bool:
        """
        캐시에 빠진 링크가 있고, 같은 링크를 이미 조회해 본 적이 없으면 True.

        업스트림이 한 번 돌려주지 않은 객체는 다시 조회해도 나오지 않으므로
        같은 env의 같은 세그먼트/사용자에 대해 반복 조회하지 않습니다.
        """
        if complete:
            return False
        if user_id is not None and user_id not in self.cache.users and (env, user_id) not in self._missed_users:
            return True
        segment_done = (env, segment_id) in self._fetched_segments
        chain_missing = not resolve_chain(self.cache, None, segment_id).complete
        return chain_missing and not segment_done

    def _remember_misses(self, complete: bool, user_id: Optional[str], segment_id: str, env: Optional[str]) -> None:
        if complete:
            return
        self._fetched_segments.add((env, segment_id))
        if user_id is not None and user_id not in self.cache.users:
            self._missed_users.add((env, user_id))

    async def enrich(self, event: ClosureEvent, env: Optional[str] = None) -> ClosureEvent:
        """
        closure의 표시 필드를 채운 새 인스턴스를 반환합니다.

        캐시에 빠진 링크가 있으면 업스트림을 한 번만 조회하고, 그래도 없는
        값은 재시도 없이 Unknown으로 둡니다.

        Args:
            event: 원본 closure
            env: 배정된 리전의 env 태그

        Returns:
            보강된 closure

        Raises:
            UpstreamAuthError: 업스트림 인증 거부 (치명적)
        """
        if not needs_lookup(event):
            metrics.enrichment_cache_hits.inc()
            return event

        user_id = event.created_by if event.created_by.isdigit() else None
        chain = resolve_chain(self.cache, user_id, event.segment_id)
        if not self._should_fetch(chain.complete, user_id, event.segment_id, env):
            metrics.enrichment_cache_hits.inc()
        elif event.has_coordinates:
            if await self._refresh(event, env):
                chain = resolve_chain(self.cache, user_id, event.segment_id)
                self._remember_misses(chain.complete, user_id, event.segment_id, env)
        else:
            log.debug(f"좌표가 없어 피처 조회 생략 closure:{event.id}")

        update = {}
        if user_id is not None:
            update["created_by"] = chain.user_name or UNKNOWN
        if event.location is None and chain.location:
            update["location"] = chain.location
        if event.road_type_enum is None and chain.road_type is not None:
            update["road_type_enum"] = chain.road_type
        return event.model_copy(update=update) if update else event
