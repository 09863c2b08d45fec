"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import asyncio
import json
import tempfile
import os
from typing import Any, Dict, List, Optional, Tuple
from closurewatch.settings import Settings
from closurewatch.core.models import ClosureEvent, ConfigSnapshot, Allowlist, Region


NOW_MS = 1_750_000_000_000


def make_closure(closure_id: str = "c1", **overrides) -> ClosureEvent:
    """테스트용 closure 생성"""
    data = {
        "id": closure_id,
        "segmentId": "42",
        "createdBy": "editor_a",
        "createdOn": NOW_MS - 60_000,
        "isForward": True,
        "lat": 39.7817,
        "lon": -89.6501,
        "location": "Main St, Springfield, IL",
        "roadType": "Primary Street",
        "roadTypeEnum": 2,
    }
    data.update(overrides)
    return ClosureEvent.model_validate(data)


def make_region(name: str = "US", **overrides) -> Region:
    """테스트용 리전 생성"""
    data = {
        "name": name,
        "env": "na",
        "locationKeywordsFilter": ["springfield"],
        "webhooks": [
            {"type": "discord", "url": "https://discord.test/hook"},
            {"type": "slack", "url": "https://slack.test/hook"},
        ],
    }
    data.update(overrides)
    return Region.model_validate(data)


def make_snapshot(*regions: Region, allowlist: Any = None) -> ConfigSnapshot:
    return ConfigSnapshot(
        regions=tuple(regions),
        allowlist=Allowlist.from_raw(allowlist if allowlist is not None else {"alice": True, "bob": False}),
    )


class FakeResponse:
    """웹훅 응답 대역"""

    def __init__(self, status: int, retry_after: Optional[float] = None):
        self.status = status
        self.retry_after = retry_after


class FakeTransport:
    """상태 코드 시퀀스를 돌려주는 웹훅 전송 대역"""

    def __init__(self, statuses: Optional[Dict[str, List[Tuple[int, Optional[float]]]]] = None):
        self.statuses = statuses or {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def post(self, url: str, payload: Dict[str, Any]) -> FakeResponse:
        self.calls.append((url, payload))
        queue = self.statuses.get(url)
        if queue:
            status, retry_after = queue.pop(0) if len(queue) > 1 else queue[0]
            return FakeResponse(status, retry_after)
        return FakeResponse(204 if "discord" in url else 200)


class FakeSleep:
    """대기 시간을 기록만 하는 sleep 대역"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class MemoryConfig:
    """snapshot 속성만 가진 설정 저장소 대역"""

    def __init__(self, snapshot: ConfigSnapshot):
        self.snapshot = snapshot


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def config_file(tmp_path):
    """리전 카탈로그 파일 작성 헬퍼"""
    path = tmp_path / "config.json"

    def _write(data: Dict[str, Any]) -> str:
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def sample_config() -> Dict[str, Any]:
    """테스트용 config.json 내용"""
    return {
        "regionBoundaries": {
            "US": {
                "xMin": -125.0, "xMax": -66.0, "yMin": 24.0, "yMax": 50.0,
                "env": "na",
                "locationKeywordsFilter": ["Springfield", "Illinois"],
                "webhooks": [{"type": "discord", "url": "https://discord.test/us"}],
                "departmentOfTransporationUrl": "https://dot.test/map?lat={lat}&lon={lon}",
                "maxClosureAgeDays": 3,
            },
            "UK": {
                "env": "row",
                "locationKeywordsFilter": ["london"],
                "webhooks": [{"type": "slack", "url": "https://slack.test/uk"}],
                "groupClosuresBySegment": False,
            },
        },
        "whitelist": {"alice": True, "bob": False},
    }


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    return settings


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "asyncio: 비동기 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        if asyncio.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)

        # 통합 테스트 마커 추가
        if "integration" in item.name or "scenario" in item.name:
            item.add_marker(pytest.mark.integration)
