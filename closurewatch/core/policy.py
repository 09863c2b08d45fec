"""
Closure age/status policy for closurewatch.

This module contains the pure function deciding whether a closure is
still eligible to be reported under a region's maxClosureAgeDays.
"""

from typing import Optional
from .models import ClosureEvent, Region

DAY_MS = 86_400_000
# 종료 시각이 없을 때 시작 시각부터 가정하는 유효 구간
FALLBACK_WINDOW_MS = 24 * 60 * 60 * 1000


def is_eligible(event: ClosureEvent, max_closure_age_days: int, now_ms: int) -> bool:
    """
    리전 정책에 따라 closure가 아직 보고 대상인지 판단합니다.

    - 0: 현재 진행 중인 closure만 (start <= now <= end)
    - 양수: 작성 후 N일 이내
    - 음수: 제한 없음

    Args:
        event: 평가할 closure
        max_closure_age_days: 리전의 maxClosureAgeDays
        now_ms: 현재 시각 (epoch ms)

    Returns:
        보고 대상이면 True
    """
    if max_closure_age_days < 0:
        return True

    if max_closure_age_days == 0:
        start = event.start_date if event.start_date is not None else event.created_on
        end: Optional[int] = event.end_date
        if end is None:
            end = start + FALLBACK_WINDOW_MS
        return start <= now_ms <= end

    return now_ms - event.created_on <= max_closure_age_days * DAY_MS


def evaluate(event: ClosureEvent, region: Region, now_ms: int) -> bool:
    """리전 설정을 그대로 받아 is_eligible을 호출합니다."""
    return is_eligible(event, region.max_closure_age_days, now_ms)
