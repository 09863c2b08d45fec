"""
Closure ingestion port interface.

This module defines the protocol for sources that produce raw
scan results (region name -> closures) for the pipeline.
"""

from typing import Any, AsyncIterator, Dict, Protocol

class ScanSourcePort(Protocol):
    """스캔 결과 수집 포트 인터페이스"""

    async def recv(self) -> AsyncIterator[Dict[str, Any]]:
        """
        새 스캔 결과를 비동기적으로 수신합니다.

        Yields:
            {리전 이름: {"closures": [...]}} 딕셔너리
        """
        ...
