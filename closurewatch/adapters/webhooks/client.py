"""
Webhook HTTP transport for closurewatch.

This module posts rendered JSON payloads to Discord/Slack style
webhooks and exposes the rate-limit hint of each response.
"""

import json
from typing import Any, Dict, Mapping, Optional

import aiohttp

from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.webhooks")


class WebhookResponse:
    """웹훅 응답 요약 (상태 코드, 본문, 헤더)"""

    def __init__(self, status: int, text: str = "", headers: Optional[Mapping[str, str]] = None):
        self.status = status
        self.text = text
        self.headers = dict(headers or {})

    @property
    def retry_after(self) -> Optional[float]:
        """
        재시도 대기 시간 (초).

        JSON 본문의 retry_after를 우선하고, 없으면 Retry-After 헤더를 사용합니다.
        """
        if self.text:
            try:
                body = json.loads(self.text)
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("retry_after") is not None:
                try:
                    return float(body["retry_after"])
                except (TypeError, ValueError):
                    pass
        for key, value in self.headers.items():
            if key.lower() == "retry-after":
                try:
                    return float(value)
                except ValueError:
                    return None
        return None

    def __repr__(self) -> str:
        return f"WebhookResponse(status={self.status})"


class WebhookClient:
    """웹훅 POST 클라이언트"""

    def __init__(self, timeout: int = 10):
        """
        초기화합니다.

        Args:
            timeout: 요청 타임아웃 (초)
        """
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        self.session = aiohttp.ClientSession(
            headers={"Content-Type": "application/json"},
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()

    async def post(self, url: str, payload: Dict[str, Any]) -> WebhookResponse:
        """
        페이로드를 POST합니다.

        Args:
            url: 웹훅 URL
            payload: JSON 본문

        Returns:
            WebhookResponse
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")
        async with self.session.post(url, json=payload) as response:
            text = await response.text()
            return WebhookResponse(response.status, text, response.headers)
