"""
Upstream Features API client for closurewatch.

This module fetches users, segments, streets, cities, states and
countries inside a bounding box from the map editor's Features
endpoint, authenticating with the session cookies harvested by the
external login agent.
"""

import asyncio
import json
from typing import Any, Dict, Optional, Tuple

import aiohttp

from closurewatch.common.retry import retry_with_backoff
from closurewatch.errors import UpstreamAuthError, UpstreamError
from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.upstream")

FEATURES_PATH = "Descartes/app/Features"
ENV_PREFIXES = {"row": "row-", "il": "il-"}

def load_cookie_header(path: str) -> str:
    """
    쿠키 파일을 Cookie 헤더 문자열로 변환합니다.

    Args:
        path: [{"name": ..., "value": ...}, ...] 형식의 JSON 파일

    Returns:
        "name=value; name2=value2"
    """
    with open(path, "r", encoding="utf-8") as f:
        cookies = json.load(f)
    if not isinstance(cookies, list):
        raise UpstreamError(f"cookie file must contain a list: {path}")
    return "; ".join(f"{c['name']}={c['value']}" for c in cookies if "name" in c and "value" in c)

def env_prefix(env: Optional[str]) -> str:
    """리전 env 태그에 해당하는 API 경로 접두사"""
    return ENV_PREFIXES.get(env or "", "")

def features_url(base_url: str, bbox: Tuple[float, float, float, float], env: Optional[str] = None) -> str:
    lon1, lat1, lon2, lat2 = bbox
    return (
        f"{base_url.rstrip('/')}/{env_prefix(env)}{FEATURES_PATH}"
        f"?bbox={lon1},{lat1},{lon2},{lat2}&roadClosures=true"
    )


class FeaturesClient:
    """업스트림 Features API 클라이언트"""

    def __init__(self,
                 base_url: str,
                 cookie_header: str = "",
                 timeout: int = 30,
                 max_retries: int = 2):
        """
        초기화합니다.

        Args:
            base_url: 업스트림 기본 URL
            cookie_header: 세션 쿠키 헤더
            timeout: 요청 타임아웃 (초)
            max_retries: 네트워크 오류 재시도 횟수
        """
        self.base_url = base_url.rstrip('/')
        self.cookie_header = cookie_header
        self.timeout = timeout
        self.max_retries = max_retries
        self.session: Optional[aiohttp.ClientSession] = None

        log.info(f"Features 클라이언트 초기화됨 base_url:{self.base_url}")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        headers = {"Accept": "application/json"}
        if self.cookie_header:
            headers["Cookie"] = self.cookie_header
        self.session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()

    async def _make_request(self, url: str) -> Dict[str, Any]:
        """
        GET 요청을 수행합니다. 네트워크 오류만 재시도합니다.

        Args:
            url: 요청 URL

        Returns:
            응답 JSON

        Raises:
            UpstreamAuthError: 401/403 응답
            UpstreamError: 그 밖의 비정상 응답
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        async def _request():
            async with self.session.get(url) as response:
                if response.status in (401, 403):
                    raise UpstreamAuthError(
                        f"upstream rejected session cookies ({response.status})", status=response.status
                    )
                if response.status >= 400:
                    raise UpstreamError(f"upstream returned {response.status}", status=response.status)
                return await response.json(content_type=None)

        return await retry_with_backoff(
            _request,
            max_retries=self.max_retries,
            retry_on=(aiohttp.ClientConnectionError, asyncio.TimeoutError),
        )

    async def fetch_features(self, bbox: Tuple[float, float, float, float],
                             env: Optional[str] = None) -> Dict[str, Any]:
        """
        경계 상자 안의 피처를 조회합니다.

        Args:
            bbox: (lon1, lat1, lon2, lat2)
            env: 리전 env 태그

        Returns:
            Features 응답
        """
        url = features_url(self.base_url, bbox, env)
        try:
            data = await self._make_request(url)
        except UpstreamAuthError:
            log.critical(f"업스트림 인증 실패 url:{url}")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(f"features request failed: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamError("features response is not an object")
        log.debug(f"피처 조회 완료 url:{url}")
        return data
