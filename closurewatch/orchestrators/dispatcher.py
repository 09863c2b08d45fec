"""
Notification dispatcher for closurewatch.

This module renders a notification group for every webhook of its
region and delivers it through the shared retry policy, enforcing a
minimum spacing between successive groups.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import aiohttp

from closurewatch.common.retry import RetryPolicy, discord_policy, slack_policy
from closurewatch.core import render
from closurewatch.core.models import DeliveryResult, NotificationGroup, Region, Webhook
from closurewatch.core.tiles import TILE_SERVERS
from closurewatch.observability import metrics
from closurewatch.observability.logging_setup import get_logger
from closurewatch.ports.dispatch import WebhookTransportPort

log = get_logger("closurewatch.dispatch")

DISCORD = "discord"
SLACK = "slack"


def render_payload(kind: str, group: NotificationGroup, region: Region,
                   servers: Sequence[str] = TILE_SERVERS) -> Dict[str, Any]:
    """
    목적지 종류와 그룹 크기에 맞는 페이로드를 만듭니다.

    Args:
        kind: "discord" 또는 "slack"
        group: 발송 그룹
        region: 그룹의 리전
        servers: 타일 서버 후보

    Returns:
        JSON 페이로드
    """
    if kind == DISCORD:
        if group.is_aggregate:
            return render.render_discord_grouped(group.events, region, servers)
        return render.render_discord(group.events[0], region, servers)
    if kind == SLACK:
        if group.is_aggregate:
            return render.render_slack_grouped(group.events, region, servers)
        return render.render_slack(group.events[0], region, servers)
    raise ValueError(f"unsupported destination type: {kind}")


class NotificationDispatcher:
    """웹훅 발송기 (그룹 간 최소 간격 + 목적지별 재시도 정책)"""

    def __init__(self,
                 transport: WebhookTransportPort,
                 *,
                 spacing_sec: float = 1.0,
                 max_attempts: int = 3,
                 default_retry_after: float = 1.0,
                 tile_servers: Sequence[str] = TILE_SERVERS,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic,
                 dry_run: bool = False):
        """
        초기화합니다.

        Args:
            transport: 웹훅 전송 포트
            spacing_sec: 그룹 간 최소 간격 (초)
            max_attempts: Discord 목적지 최대 시도 횟수
            default_retry_after: 응답에 retry_after가 없을 때 대기 시간 (초)
            tile_servers: 타일 서버 후보
            sleep: 대기 함수
            clock: 단조 시계
            dry_run: True면 렌더링만 하고 전송하지 않음
        """
        self.transport = transport
        self.spacing_sec = spacing_sec
        self.tile_servers = tile_servers
        self.sleep = sleep
        self.clock = clock
        self.dry_run = dry_run
        self._last_dispatch: Optional[float] = None
        self._policies: Dict[str, RetryPolicy] = {
            DISCORD: discord_policy(max_attempts, default_retry_after, sleep),
            SLACK: slack_policy(sleep),
        }

    async def _wait_spacing(self) -> None:
        if self._last_dispatch is None:
            return
        remaining = self.spacing_sec - (self.clock() - self._last_dispatch)
        if remaining > 0:
            await self.sleep(remaining)

    async def dispatch(self, group: NotificationGroup, region: Region) -> List[DeliveryResult]:
        """
        그룹을 리전의 모든 웹훅으로 발송합니다.

        Args:
            group: 발송 그룹
            region: 그룹의 리전

        Returns:
            목적지별 DeliveryResult 목록
        """
        await self._wait_spacing()
        results: List[DeliveryResult] = []
        try:
            for webhook in region.webhooks:
                kind = webhook.type.strip().lower()
                if kind not in self._policies:
                    log.warning(f"지원하지 않는 웹훅 유형 무시 region:{region.name} type:{webhook.type}")
                    continue
                payload = render_payload(kind, group, region, self.tile_servers)
                results.append(await self._deliver(kind, webhook, payload))
        finally:
            self._last_dispatch = self.clock()

        log.info(
            f"알림 발송 완료 region:{region.name} segment:{group.segment_id} "
            f"closures:{len(group.events)} ok:{sum(r.ok for r in results)}/{len(results)}"
        )
        return results

    async def _deliver(self, kind: str, webhook: Webhook, payload: Dict[str, Any]) -> DeliveryResult:
        if self.dry_run:
            log.info(f"[dry-run] 웹훅 발송 생략 type:{kind} url:{webhook.url}")
            return DeliveryResult(destination=kind, url=webhook.url, ok=True, attempts=0)

        policy = self._policies[kind]
        try:
            response, attempts = await policy.run(lambda: self.transport.post(webhook.url, payload))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            metrics.notifications_failed.labels(destination=kind).inc()
            log.error(f"웹훅 전송 오류 type:{kind} url:{webhook.url} error:{e!r}")
            return DeliveryResult(destination=kind, url=webhook.url, ok=False, attempts=1, error=repr(e))

        if attempts > 1:
            metrics.webhook_retries.labels(destination=kind).inc(attempts - 1)

        ok = policy.is_success(response.status)
        if ok:
            metrics.notifications_sent.labels(destination=kind).inc()
            return DeliveryResult(destination=kind, url=webhook.url, ok=True, status=response.status, attempts=attempts)

        metrics.notifications_failed.labels(destination=kind).inc()
        if policy.is_retryable(response.status):
            error = f"rate limited after {attempts} attempts"
        else:
            error = f"unexpected status {response.status}"
        log.error(f"웹훅 전송 실패 type:{kind} url:{webhook.url} status:{response.status} attempts:{attempts}")
        return DeliveryResult(
            destination=kind, url=webhook.url, ok=False, status=response.status, attempts=attempts, error=error
        )
