"""
Retry utilities for closurewatch.

This module provides retry_with_backoff for upstream network calls and
the status-driven retry policy shared by the webhook destinations.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, Protocol, Tuple, Type, TypeVar

T = TypeVar('T')


class PolicyResponse(Protocol):
    """RetryPolicy가 요구하는 응답 형태"""
    status: int
    retry_after: Optional[float]

async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    지수 백오프와 함께 함수를 재시도합니다.

    retry_on에 속하지 않는 예외는 재시도 없이 즉시 전파됩니다.

    Args:
        func: 재시도할 비동기 함수
        max_retries: 최대 재시도 횟수
        base_delay: 기본 지연 시간 (초)
        max_delay: 최대 지연 시간 (초)
        jitter: 지터 적용 여부
        retry_on: 재시도할 예외 타입들

    Returns:
        함수 실행 결과

    Raises:
        마지막 시도에서 발생한 예외
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except retry_on:
            if attempt > max_retries:
                raise

            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            if jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            await asyncio.sleep(delay)


class RetryPolicy:
    """
    응답 상태 기반 재시도 정책.

    성공/재시도 판정을 주입받아 목적지 종류별 발송 루프를 하나로 통합합니다.
    재시도 대기 시간은 응답이 알려주는 값(retry_after)을 우선 사용합니다.
    """

    def __init__(self,
                 is_success: Callable[[int], bool],
                 is_retryable: Callable[[int], bool] = lambda status: False,
                 max_attempts: int = 3,
                 default_delay: float = 1.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        초기화합니다.

        Args:
            is_success: 성공 상태 코드 판정
            is_retryable: 재시도 대상 상태 코드 판정
            max_attempts: 총 시도 횟수 상한
            default_delay: 응답에 대기 시간이 없을 때 사용할 값 (초)
            sleep: 대기 함수 (테스트에서 교체)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.is_success = is_success
        self.is_retryable = is_retryable
        self.max_attempts = max_attempts
        self.default_delay = default_delay
        self.sleep = sleep

    async def run(self, send: Callable[[], Awaitable[PolicyResponse]]) -> Tuple[PolicyResponse, int]:
        """
        send를 정책에 따라 실행합니다.

        Args:
            send: 한 번의 요청을 보내고 status/retry_after를 가진 응답을 돌려주는 함수

        Returns:
            (마지막 응답, 시도 횟수)
        """
        attempt = 0
        while True:
            attempt += 1
            response = await send()
            if self.is_success(response.status):
                return response, attempt
            if not self.is_retryable(response.status) or attempt >= self.max_attempts:
                return response, attempt
            delay = response.retry_after
            await self.sleep(self.default_delay if delay is None else delay)


def discord_policy(max_attempts: int = 3, default_delay: float = 1.0, sleep=asyncio.sleep) -> RetryPolicy:
    """204만 성공, 429는 retry_after 대기 후 재시도"""
    return RetryPolicy(
        is_success=lambda status: status == 204,
        is_retryable=lambda status: status == 429,
        max_attempts=max_attempts,
        default_delay=default_delay,
        sleep=sleep,
    )

def slack_policy(sleep=asyncio.sleep) -> RetryPolicy:
    """2xx는 성공, 나머지는 재시도 없이 실패"""
    return RetryPolicy(
        is_success=lambda status: 200 <= status < 300,
        max_attempts=1,
        sleep=sleep,
    )
