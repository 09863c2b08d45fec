"""
Closure processing pipeline for closurewatch.

This module implements the single worker that consumes upload batches
and scan jobs from one queue: dedup -> region resolution -> age filter
-> tracking persistence -> grouping -> enrichment -> dispatch.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from closurewatch.core import grouping, policy, region as region_resolver
from closurewatch.core.models import (
    ClosureEvent,
    ConfigSnapshot,
    DeliveryResult,
    NotificationGroup,
    Region,
    UploadBatch,
)
from closurewatch.errors import UpstreamAuthError
from closurewatch.observability import metrics
from closurewatch.observability.logging_setup import get_logger
from closurewatch.orchestrators.dispatcher import NotificationDispatcher
from closurewatch.orchestrators.enricher import FeatureEnricher
from closurewatch.ports.tracking import TrackingStorePort

log = get_logger("closurewatch.pipeline")


class ScanJob:
    """스캔 결과 파일 한 번의 변경분"""

    def __init__(self, results: Dict[str, Any]):
        self.results = results


Job = Union[UploadBatch, ScanJob]


def now_ms() -> int:
    return int(time.time() * 1000)


class ClosurePipeline:
    """단일 워커 closure 처리 파이프라인"""

    def __init__(self,
                 config,
                 tracking: TrackingStorePort,
                 enricher: FeatureEnricher,
                 dispatcher: NotificationDispatcher,
                 *,
                 queue_maxsize: int = 100,
                 default_env: str = "na",
                 clock_ms: Callable[[], int] = now_ms):
        """
        초기화합니다.

        Args:
            config: 현재 ConfigSnapshot을 snapshot 속성으로 제공하는 설정 저장소
            tracking: closure 추적 저장소
            enricher: 피처 보강기
            dispatcher: 알림 발송기
            queue_maxsize: 작업 큐 최대 크기
            default_env: 위치 없는 업로드를 먼저 조회할 업스트림 env
            clock_ms: 현재 시각 (epoch ms)
        """
        self.config = config
        self.tracking = tracking
        self.enricher = enricher
        self.dispatcher = dispatcher
        self.default_env = default_env
        self.clock_ms = clock_ms
        self.q: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self.lock = asyncio.Lock()

    # ---- 큐 ----

    def _enqueue(self, job: Job) -> bool:
        try:
            self.q.put_nowait(job)
        except asyncio.QueueFull:
            log.warning("작업 큐가 가득 찼습니다. 작업을 드롭합니다.")
            return False
        metrics.queue_depth.set(self.q.qsize())
        return True

    def submit(self, batch: UploadBatch) -> bool:
        """업로드 배치를 큐에 넣습니다. 큐가 가득 차면 False."""
        metrics.closures_received.labels(source="upload").inc(len(batch.closures))
        return self._enqueue(batch)

    def submit_scan(self, results: Dict[str, Any]) -> bool:
        """스캔 결과를 큐에 넣습니다."""
        return self._enqueue(ScanJob(results))

    async def run(self) -> None:
        """
        큐를 소비하는 단일 워커.

        업스트림 인증 실패는 워커 밖으로 전파되어 프로세스를 종료시킵니다.
        """
        log.info("파이프라인 워커 시작됨")
        while True:
            job = await self.q.get()
            try:
                if isinstance(job, ScanJob):
                    await self.process_scan(job.results)
                else:
                    await self.process_batch(job)
            except UpstreamAuthError:
                raise
            except Exception as e:
                log.exception(f"작업 처리 오류: {e}")
            finally:
                self.q.task_done()
                metrics.queue_depth.set(self.q.qsize())

    # ---- 업로드 흐름 ----

    async def process_batch(self, batch: UploadBatch) -> List[DeliveryResult]:
        """
        업로드 배치 하나를 처리합니다.

        Args:
            batch: 업로드 배치

        Returns:
            발송 결과 목록
        """
        async with self.lock:
            with metrics.batch_seconds.time():
                snapshot: ConfigSnapshot = self.config.snapshot
                now = self.clock_ms()
                assigned: List[Tuple[ClosureEvent, str]] = []

                for event in batch.closures:
                    if not await self.tracking.is_new(event.id):
                        metrics.closures_duplicate.inc()
                        continue

                    candidate, region = await self._locate(event, snapshot)
                    if region is None:
                        metrics.closures_unassigned.inc()
                        await self.tracking.forget(event.id)
                        log.warning(f"리전 미배정 closure 드롭 id:{event.id} location:{candidate.location}")
                        continue

                    await self.tracking.record(event.id, region.name)

                    if not policy.evaluate(candidate, region, now):
                        metrics.closures_stale.labels(region=region.name).inc()
                        log.debug(f"기간 정책으로 제외 id:{event.id} region:{region.name}")
                        continue
                    assigned.append((candidate, region.name))

                log.info(
                    f"업로드 처리 user:{batch.user_name} received:{len(batch.closures)} accepted:{len(assigned)}"
                )
                results = await self._dispatch(assigned, snapshot, enrich=True)
                await self._update_store_metrics()
                return results

    def _lookup_envs(self, snapshot: ConfigSnapshot) -> List[str]:
        """기본 env 다음에 설정된 리전의 env를 중복 없이 순서대로"""
        envs = [self.default_env]
        for r in snapshot.regions:
            env = r.env or self.default_env
            if env not in envs:
                envs.append(env)
        return envs

    async def _locate(self,
                      event: ClosureEvent,
                      snapshot: ConfigSnapshot) -> Tuple[ClosureEvent, Optional[Region]]:
        """
        closure의 리전을 결정합니다.

        위치가 없으면 리전이 정해질 때까지 env별로 한 번씩 보강을 시도합니다.
        """
        if event.location is not None:
            return event, region_resolver.resolve(event.location, snapshot.regions)

        candidate = event
        for env in self._lookup_envs(snapshot):
            candidate = await self.enricher.enrich(event, env)
            region = region_resolver.resolve(candidate.location, snapshot.regions)
            if region is not None:
                return candidate, region
        return candidate, None

    # ---- 스캔 흐름 ----

    async def process_scan(self, results: Dict[str, Any]) -> List[DeliveryResult]:
        """
        스캔 결과를 처리합니다.

        새 closure는 스캔한 리전으로 기록된 뒤 보강되고, 보강된 위치가 그
        리전 키워드와 맞지 않으면 다른 리전으로 재배정하여 알리거나,
        맞는 리전이 없으면 추적만 유지하고 알리지 않습니다.

        Args:
            results: {리전 이름: {"closures": [...]}}

        Returns:
            발송 결과 목록
        """
        async with self.lock:
            with metrics.batch_seconds.time():
                snapshot: ConfigSnapshot = self.config.snapshot
                now = self.clock_ms()
                assigned: List[Tuple[ClosureEvent, str]] = []

                for region_name, section in results.items():
                    scanned = snapshot.region(region_name)
                    if scanned is None:
                        log.warning(f"설정에 없는 리전의 스캔 결과 무시 region:{region_name}")
                        continue
                    raw_closures = section.get("closures", []) if isinstance(section, dict) else []
                    metrics.closures_received.labels(source="scan").inc(len(raw_closures))

                    for raw in raw_closures:
                        event = self._parse_scanned(raw, region_name)
                        if event is None:
                            continue
                        if not await self.tracking.is_new(event.id):
                            metrics.closures_duplicate.inc()
                            continue

                        await self.tracking.record(event.id, scanned.name)
                        enriched = await self.enricher.enrich(event, scanned.env)

                        target = scanned
                        if region_resolver.needs_reassignment(scanned, enriched.location):
                            other = region_resolver.resolve(enriched.location, snapshot.regions, exclude=scanned.name)
                            if other is None:
                                metrics.closures_suppressed.labels(region=scanned.name).inc()
                                log.info(
                                    f"키워드 불일치 closure 알림 억제 id:{event.id} "
                                    f"region:{scanned.name} location:{enriched.location}"
                                )
                                continue
                            await self.tracking.reassign(event.id, other.name)
                            metrics.closures_reassigned.labels(region=other.name).inc()
                            target = other

                        if not policy.evaluate(enriched, target, now):
                            metrics.closures_stale.labels(region=target.name).inc()
                            continue
                        assigned.append((enriched, target.name))

                results_out = await self._dispatch(assigned, snapshot, enrich=False)
                await self._update_store_metrics()
                return results_out

    def _parse_scanned(self, raw: Any, region_name: str) -> Optional[ClosureEvent]:
        try:
            return ClosureEvent.model_validate(raw)
        except ValidationError as e:
            log.warning(f"스캔 closure 해석 실패 region:{region_name} error:{e.errors()[:1]}")
            return None

    # ---- 공통 ----

    async def _dispatch(self,
                        assigned: List[Tuple[ClosureEvent, str]],
                        snapshot: ConfigSnapshot,
                        *,
                        enrich: bool) -> List[DeliveryResult]:
        results: List[DeliveryResult] = []
        for grp in grouping.group(assigned, snapshot.region):
            region = snapshot.region(grp.region)
            if region is None:
                continue
            if enrich:
                events = [await self.enricher.enrich(e, region.env) for e in grp.events]
                grp = NotificationGroup(region=grp.region, events=events)
            results.extend(await self.dispatcher.dispatch(grp, region))
        return results

    async def _update_store_metrics(self) -> None:
        metrics.tracking_store_size.set(await self.tracking.get_count())
