"""
Geographic utilities for closurewatch.

This module provides the coordinate helpers used for upstream
bounding boxes, external map links and web-mercator tile indices.
"""

import math
from typing import Tuple

PREVIEW_ZOOM = 17

def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    return -90 <= lat <= 90 and -180 <= lon <= 180

def round_half_up(value: float, digits: int) -> float:
    """JS toFixed와 같은 방식(0.5 올림)으로 반올림합니다."""
    q = 10 ** digits
    return math.floor(abs(value) * q + 0.5) / q * (1 if value >= 0 else -1)

def bbox_around(lat: float, lon: float, padding: float = 0.005) -> Tuple[float, float, float, float]:
    """
    소수 셋째 자리로 반올림한 점 주위의 작은 경계 상자를 계산합니다.

    Args:
        lat: 위도
        lon: 경도
        padding: 상하좌우 여유 (도)

    Returns:
        (lon1, lat1, lon2, lat2) - 1은 +padding, 2는 -padding 모서리
    """
    base_lon = round_half_up(lon, 3)
    base_lat = round_half_up(lat, 3)
    return (base_lon + padding, base_lat + padding, base_lon - padding, base_lat - padding)

def lon2tile(lon: float, zoom: int = PREVIEW_ZOOM) -> str:
    """경도를 웹 메르카토르 타일 X 인덱스로 변환합니다."""
    return str(math.floor(((lon + 180) / 360) * 2 ** zoom))

def lat2tile(lat: float, zoom: int = PREVIEW_ZOOM) -> str:
    """위도를 웹 메르카토르 타일 Y 인덱스로 변환합니다."""
    rad = math.radians(lat)
    return str(math.floor(
        ((1 - math.log(math.tan(rad) + 1 / math.cos(rad)) / math.pi) / 2) * 2 ** zoom
    ))
