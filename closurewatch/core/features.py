"""
Feature cache model for closurewatch.

The cache holds six independent id -> record maps (users, segments,
streets, cities, states, countries). It is an immutable snapshot:
`hydrate` merges an upstream Features payload and returns a new
snapshot plus the records that were actually added.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

from .models import (
    CityRecord,
    CountryRecord,
    SegmentRecord,
    StateRecord,
    StreetRecord,
    UserRecord,
)

FEATURE_KINDS = ("users", "segments", "streets", "cities", "states", "countries")


class FeatureCache(BaseModel):
    """피처 캐시 스냅샷 (레코드는 한 번 저장되면 무효화되지 않음)"""
    model_config = ConfigDict(frozen=True)

    users: Dict[str, UserRecord] = Field(default_factory=dict)
    segments: Dict[str, SegmentRecord] = Field(default_factory=dict)
    streets: Dict[str, StreetRecord] = Field(default_factory=dict)
    cities: Dict[str, CityRecord] = Field(default_factory=dict)
    states: Dict[str, StateRecord] = Field(default_factory=dict)
    countries: Dict[str, CountryRecord] = Field(default_factory=dict)

    def size(self) -> int:
        return sum(len(getattr(self, kind)) for kind in FEATURE_KINDS)


def _id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)

def _first(obj: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if obj.get(key) is not None:
            return obj[key]
    return None

def _display_name(obj: Mapping[str, Any]) -> Optional[str]:
    """표시 이름 우선, 없으면 englishName"""
    return obj.get("name") or obj.get("englishName") or None


def parse_record(kind: str, obj: Mapping[str, Any]):
    """
    업스트림 객체 하나를 캐시 레코드로 변환합니다.

    Args:
        kind: 피처 종류
        obj: 업스트림 원본 객체

    Returns:
        레코드, id가 없으면 None
    """
    record_id = _id(obj.get("id"))
    if record_id is None:
        return None
    if kind == "users":
        return UserRecord(id=record_id, name=obj.get("userName") or obj.get("name"), rank=obj.get("rank"))
    if kind == "segments":
        return SegmentRecord(
            id=record_id,
            road_type=obj.get("roadType"),
            street_id=_id(_first(obj, "primaryStreetID", "primaryStreetId", "streetID", "streetId")),
        )
    if kind == "streets":
        return StreetRecord(id=record_id, name=_display_name(obj), city_id=_id(_first(obj, "cityID", "cityId")))
    if kind == "cities":
        return CityRecord(
            id=record_id,
            name=_display_name(obj),
            state_id=_id(_first(obj, "stateID", "stateId")),
            country_id=_id(_first(obj, "countryID", "countryId")),
        )
    if kind == "states":
        return StateRecord(id=record_id, name=_display_name(obj))
    if kind == "countries":
        return CountryRecord(id=record_id, name=_display_name(obj), abbr=obj.get("abbr"))
    raise ValueError(f"unknown feature kind: {kind}")


def hydrate(cache: FeatureCache, payload: Mapping[str, Any]) -> Tuple[FeatureCache, Dict[str, List[Any]]]:
    """
    업스트림 Features 응답 전체를 캐시에 병합합니다.

    이번 이벤트에 필요 없는 객체도 모두 병합하며, 이미 있는 레코드는
    덮어쓰지 않습니다.

    Args:
        cache: 현재 스냅샷
        payload: {"users": {"objects": [...]}, "segments": ..., ...}

    Returns:
        (병합된 새 스냅샷, 종류별로 새로 추가된 레코드)
    """
    merged: Dict[str, Dict[str, Any]] = {}
    added: Dict[str, List[Any]] = {}
    for kind in FEATURE_KINDS:
        current = getattr(cache, kind)
        section = payload.get(kind) or {}
        objects = section.get("objects", []) if isinstance(section, Mapping) else section
        fresh = []
        for obj in objects or []:
            if not isinstance(obj, Mapping):
                continue
            record = parse_record(kind, obj)
            if record is None or record.id in current:
                continue
            if any(r.id == record.id for r in fresh):
                continue
            fresh.append(record)
        if fresh:
            table = dict(current)
            table.update({r.id: r for r in fresh})
            merged[kind] = table
            added[kind] = fresh
    if not merged:
        return cache, {}
    return cache.model_copy(update=merged), added


class ChainResult(BaseModel):
    """캐시에서 한 closure의 식별자 체인을 따라간 결과"""
    user_name: Optional[str] = None
    road_type: Optional[int] = None
    location: Optional[str] = None
    complete: bool = False


def resolve_chain(cache: FeatureCache, user_id: Optional[str], segment_id: str) -> ChainResult:
    """
    user와 segment→street→city→state/country 체인을 캐시에서 해석합니다.

    Args:
        cache: 캐시 스냅샷
        user_id: 숫자 사용자 id (이름이 이미 있으면 None)
        segment_id: 세그먼트 id

    Returns:
        ChainResult (complete는 필요한 링크가 모두 캐시에 있을 때 True)
    """
    complete = True

    user_name = None
    if user_id is not None:
        user = cache.users.get(user_id)
        if user is None:
            complete = False
        else:
            user_name = user.name

    segment = cache.segments.get(segment_id)
    if segment is None:
        return ChainResult(user_name=user_name, complete=False)

    parts: List[Optional[str]] = []
    street = cache.streets.get(segment.street_id) if segment.street_id else None
    if segment.street_id and street is None:
        complete = False
    city = None
    if street is not None:
        parts.append(street.name)
        if street.city_id:
            city = cache.cities.get(street.city_id)
            if city is None:
                complete = False
    if city is not None:
        parts.append(city.name)
        if city.state_id:
            state = cache.states.get(city.state_id)
            if state is None:
                complete = False
            else:
                parts.append(state.name)
        if city.country_id:
            country = cache.countries.get(city.country_id)
            if country is None:
                complete = False
            else:
                parts.append(country.name)

    names = [p for p in parts if p]
    return ChainResult(
        user_name=user_name,
        road_type=segment.road_type,
        location=", ".join(names) or None,
        complete=complete,
    )
