"""
Scan-results file watcher for closurewatch.

The external area scanner rewrites a JSON file of the form
{REGION: {"closures": [...]}} as it progresses. This watcher polls the
file's modification time and yields the parsed content on every change.
"""

import asyncio
import json
import os
from typing import Any, AsyncIterator, Dict, Optional

from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.scan")


class ScanFileWatcher:
    """스캔 결과 파일 감시기"""

    def __init__(self, path: str, poll_sec: float = 1.0):
        """
        초기화합니다.

        Args:
            path: 스캔 결과 JSON 파일 경로
            poll_sec: 수정 시각 확인 주기 (초)
        """
        self.path = path
        self.poll_sec = poll_sec
        self._mtime: Optional[float] = None

    def _stat(self) -> Optional[float]:
        try:
            return os.stat(self.path).st_mtime
        except FileNotFoundError:
            return None

    def read(self) -> Optional[Dict[str, Any]]:
        """
        현재 파일 내용을 읽습니다.

        Returns:
            스캔 결과, 파일이 없거나 쓰는 중이라 해석할 수 없으면 None
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            log.warning(f"스캔 결과 파일 해석 실패, 다음 주기에 재시도 path:{self.path} error:{e}")
            return None
        if not isinstance(data, dict):
            log.warning(f"스캔 결과 최상위가 객체가 아님 path:{self.path}")
            return None
        return data

    def poll(self) -> Optional[Dict[str, Any]]:
        """수정 시각이 바뀌었으면 새 내용을, 아니면 None을 반환합니다."""
        mtime = self._stat()
        if mtime is None or mtime == self._mtime:
            return None
        data = self.read()
        if data is not None:
            self._mtime = mtime
        return data

    async def recv(self) -> AsyncIterator[Dict[str, Any]]:
        """
        파일이 바뀔 때마다 스캔 결과를 내보냅니다. 시작 시 한 번 즉시 확인합니다.

        Yields:
            {리전 이름: {"closures": [...]}}
        """
        log.info(f"스캔 결과 감시 시작 path:{self.path} interval:{self.poll_sec}s")
        while True:
            data = self.poll()
            if data is not None:
                yield data
            await asyncio.sleep(self.poll_sec)
