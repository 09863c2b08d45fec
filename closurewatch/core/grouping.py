"""
Grouping engine for closurewatch.

Buckets newly accepted closures by (segment, region) so that many
reports on one road segment in a batch produce a single notification.
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple
from .models import ClosureEvent, NotificationGroup, Region


def group(
    assigned: Sequence[Tuple[ClosureEvent, str]],
    region_lookup: Callable[[str], Optional[Region]],
) -> List[NotificationGroup]:
    """
    closure들을 발송 단위로 묶습니다.

    그룹화가 꺼진 리전의 closure는 즉시 단독 그룹이 되고, 켜진 리전은
    (세그먼트, 리전) 키로 묶입니다. 결과 순서는 각 그룹의 첫 등장 순서입니다.

    Args:
        assigned: (closure, 리전 이름) 목록
        region_lookup: 리전 이름 → Region

    Returns:
        NotificationGroup 목록
    """
    slots: List[List] = []  # [region_name, events]
    buckets: Dict[Tuple[str, str], List] = {}

    for event, region_name in assigned:
        region = region_lookup(region_name)
        should_group = region.group_by_segment if region is not None else True

        if not should_group:
            slots.append([region_name, [event]])
            continue

        key = (event.segment_id, region_name)
        slot = buckets.get(key)
        if slot is None:
            slot = [region_name, []]
            buckets[key] = slot
            slots.append(slot)
        slot[1].append(event)

    return [NotificationGroup(region=name, events=events) for name, events in slots]
