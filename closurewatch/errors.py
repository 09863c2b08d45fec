"""
Exception hierarchy for closurewatch.

Errors raised at the ingestion boundary, by the configuration
loader and by the upstream feature service.
"""

from typing import Optional


class ClosureWatchError(Exception):
    """closurewatch 기본 예외"""


class ConfigError(ClosureWatchError):
    """리전/웹훅 설정 파일을 읽거나 해석할 수 없음"""


class MalformedUploadError(ClosureWatchError):
    """업로드 본문이 비어 있거나 형식이 잘못됨"""


class UpstreamError(ClosureWatchError):
    """업스트림 피처 서비스 호출 실패"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class UpstreamAuthError(UpstreamError):
    """업스트림 인증 거부 (복구 불가, 프로세스 종료)"""
