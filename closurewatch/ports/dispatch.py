"""
Webhook transport port interface.

This module defines the protocol for delivering a rendered
payload to one webhook destination.
"""

from typing import Any, Dict, Optional, Protocol

class WebhookResponsePort(Protocol):
    status: int
    retry_after: Optional[float]

class WebhookTransportPort(Protocol):
    """웹훅 전송 포트 인터페이스"""

    async def post(self, url: str, payload: Dict[str, Any]) -> WebhookResponsePort:
        """
        페이로드를 POST합니다.

        Args:
            url: 웹훅 URL
            payload: JSON 본문

        Returns:
            상태 코드와 retry_after를 가진 응답
        """
        ...
