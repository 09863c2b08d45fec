"""
Region resolution for closurewatch.

Pure functions that assign a closure's free-text location to one of
the configured regions by case-insensitive keyword match.
"""

from typing import Iterable, Optional
from closurewatch.core.models import Region


def resolve(
    location: Optional[str],
    regions: Iterable[Region],
    *,
    exclude: Optional[str] = None,
) -> Optional[Region]:
    """
    위치 문자열과 일치하는 첫 번째 리전을 찾습니다.

    선언 순서대로 리전을 순회하며, 키워드 중 하나라도 위치 문자열의
    부분 문자열(대소문자 무시)이면 그 리전을 반환합니다.

    Args:
        location: 위치 문자열
        regions: 선언 순서의 리전 목록
        exclude: 재배정 시 제외할 현재 리전 이름

    Returns:
        일치한 리전, 없으면 None
    """
    if not location:
        return None
    for region in regions:
        if exclude is not None and region.name == exclude:
            continue
        if region.matches(location):
            return region
    return None


def needs_reassignment(region: Region, location: Optional[str]) -> bool:
    """보강된 위치가 현재 리전 키워드와 더 이상 맞지 않으면 True"""
    return not region.matches(location)
