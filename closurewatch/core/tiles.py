"""
Tile preview host selection for closurewatch.

Deterministically spreads tile preview requests over several
hosts so that the same (x, y) tile always hits the same cache.
"""

import math
from typing import Optional, Sequence, Union
from closurewatch.common.geo import PREVIEW_ZOOM, lat2tile, lon2tile

# 황금비의 소수부 (√5 − 1) / 2
URL_HASH_FACTOR = (math.sqrt(5) - 1) / 2

TILE_SERVERS = (
    "https://editor-tiles-{env}-1.waze.com/tiles/roads/{z}/{x}/{y}/tile.png",
    "https://editor-tiles-{env}-2.waze.com/tiles/roads/{z}/{x}/{y}/tile.png",
    "https://editor-tiles-{env}-3.waze.com/tiles/roads/{z}/{x}/{y}/tile.png",
    "https://editor-tiles-{env}-4.waze.com/tiles/roads/{z}/{x}/{y}/tile.png",
)

KNOWN_TILE_ENVS = ("row", "il")
DEFAULT_TILE_ENV = "na"


def tile_env(env: Optional[str]) -> str:
    """리전 env 태그를 타일 호스트 네임스페이스로 변환합니다."""
    return env if env in KNOWN_TILE_ENVS else DEFAULT_TILE_ENV


def server_index(tile_x: Union[int, str], tile_y: Union[int, str], count: int) -> int:
    """
    (x, y) 타일 좌표에서 후보 호스트 인덱스를 계산합니다.

    두 좌표를 이어 붙인 문자열의 각 문자 코드에 황금비 소수부를 곱해
    누적하고, 매 단계 소수부만 남깁니다.
    """
    if count <= 0:
        raise ValueError("candidate server list is empty")
    n = 1.0
    for ch in f"{tile_x}{tile_y}":
        n *= ord(ch) * URL_HASH_FACTOR
        n -= math.floor(n)
    return math.floor(n * count)


def pick_server(
    tile_x: Union[int, str],
    tile_y: Union[int, str],
    servers: Sequence[str] = TILE_SERVERS,
    env: Optional[str] = None,
    zoom: int = PREVIEW_ZOOM,
) -> str:
    """
    타일 미리보기 URL을 결정적으로 선택합니다.

    Args:
        tile_x: 타일 X 인덱스
        tile_y: 타일 Y 인덱스
        servers: URL 템플릿 후보 ({env}, {z}, {x}, {y} 자리표시자)
        env: 리전 env 태그 (없으면 "na")
        zoom: 줌 레벨

    Returns:
        치환이 끝난 타일 URL
    """
    template = servers[server_index(tile_x, tile_y, len(servers))]
    return template.format(env=tile_env(env), z=zoom, x=tile_x, y=tile_y)


def preview_url(lat: float, lon: float, env: Optional[str] = None,
                servers: Sequence[str] = TILE_SERVERS) -> str:
    """좌표에 해당하는 미리보기 타일 URL"""
    return pick_server(lon2tile(lon), lat2tile(lat), servers, env)
