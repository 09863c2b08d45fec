"""
common.retry 단위 테스트

상태 기반 RetryPolicy와 예외 기반 retry_with_backoff를 테스트합니다.
"""

import pytest
from unittest.mock import AsyncMock, patch

from closurewatch.common.retry import RetryPolicy, discord_policy, retry_with_backoff, slack_policy
from conftest import FakeResponse, FakeSleep


class TestRetryPolicy:
    """RetryPolicy 테스트"""

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self):
        """429 + retry_after=2 → 2초 이상 대기 후 재시도, 최대 3회"""
        sleep = FakeSleep()
        send = AsyncMock(return_value=FakeResponse(429, 2.0))
        policy = discord_policy(max_attempts=3, sleep=sleep)

        response, attempts = await policy.run(send)

        assert response.status == 429
        assert attempts == 3
        assert send.await_count == 3
        assert sleep.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_success_after_rate_limit(self):
        sleep = FakeSleep()
        send = AsyncMock(side_effect=[FakeResponse(429, 0.5), FakeResponse(204)])

        response, attempts = await discord_policy(sleep=sleep).run(send)

        assert response.status == 204
        assert attempts == 2
        assert sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_default_delay_when_missing(self):
        sleep = FakeSleep()
        send = AsyncMock(side_effect=[FakeResponse(429, None), FakeResponse(204)])

        await discord_policy(default_delay=1.0, sleep=sleep).run(send)

        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_other_status_not_retried(self):
        """Discord: 204/429 외 상태는 즉시 실패"""
        sleep = FakeSleep()
        send = AsyncMock(return_value=FakeResponse(200))

        response, attempts = await discord_policy(sleep=sleep).run(send)

        assert attempts == 1
        assert not discord_policy().is_success(response.status)
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_slack_any_2xx(self):
        policy = slack_policy(sleep=FakeSleep())
        response, attempts = await policy.run(AsyncMock(return_value=FakeResponse(201)))
        assert policy.is_success(response.status)

        response, attempts = await policy.run(AsyncMock(return_value=FakeResponse(429, 1.0)))
        assert attempts == 1
        assert not policy.is_success(response.status)

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(is_success=lambda s: True, max_attempts=0)


class TestRetryWithBackoff:
    """retry_with_backoff 테스트"""

    @pytest.mark.asyncio
    async def test_retries_listed_exceptions(self):
        func = AsyncMock(side_effect=[ConnectionError("x"), "ok"])
        with patch("closurewatch.common.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(func, max_retries=2, retry_on=(ConnectionError,))
        assert result == "ok"
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_unlisted_exception_propagates_immediately(self):
        func = AsyncMock(side_effect=KeyError("boom"))
        with pytest.raises(KeyError):
            await retry_with_backoff(func, max_retries=3, retry_on=(ConnectionError,))
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        with patch("closurewatch.common.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                await retry_with_backoff(func, max_retries=2, retry_on=(ConnectionError,))
        assert func.await_count == 3
