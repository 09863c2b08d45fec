"""
Core domain models for closurewatch.

This module defines the closure, region catalog, tracking and
feature-cache models using Pydantic v2 for validation of the
upload contract and the operator configuration file.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# 기본 경과 허용일 (maxClosureAgeDays 미지정 시)
DEFAULT_MAX_CLOSURE_AGE_DAYS = 3

FORWARD_LABEL = "A➜B"
BACKWARD_LABEL = "B➜A"


def to_epoch_ms(value: Any) -> Optional[int]:
    """
    숫자/문자열 시각을 epoch 밀리초로 변환합니다.

    Args:
        value: epoch ms 숫자, 숫자 문자열, ISO-8601 문자열 또는 datetime

    Returns:
        epoch 밀리초, 값이 없으면 None
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a timestamp")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        try:
            return int(float(text))
        except ValueError:
            pass
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


class ClosureEvent(BaseModel):
    """
    외부 수집 에이전트가 보고한 도로 통제(closure) 한 건.

    업로드 계약의 camelCase 필드와 업스트림 원본 필드명을 모두 받습니다.
    수집 이후에는 불변이며, 보강 결과는 model_copy로 새 인스턴스를 만듭니다.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str
    segment_id: str = Field(validation_alias=AliasChoices("segmentId", "segID", "segment_id"))
    created_by: str = Field(default="Unknown", validation_alias=AliasChoices("createdBy", "created_by"))
    created_on: int = Field(validation_alias=AliasChoices("createdOn", "timestamp", "created_on"))
    is_forward: bool = Field(default=True, validation_alias=AliasChoices("isForward", "forward", "is_forward"))
    lat: Optional[float] = None
    lon: Optional[float] = None
    location: Optional[str] = None
    road_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("roadType", "road_type"))
    road_type_enum: Optional[int] = Field(default=None, validation_alias=AliasChoices("roadTypeEnum", "road_type_enum"))
    duration: Optional[str] = None
    status: Optional[str] = Field(default=None, validation_alias=AliasChoices("status", "closureStatus"))
    start_date: Optional[int] = Field(default=None, validation_alias=AliasChoices("startDate", "start_date"))
    end_date: Optional[int] = Field(default=None, validation_alias=AliasChoices("endDate", "end_date"))

    @model_validator(mode="before")
    @classmethod
    def _normalize_raw(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # "A➜B"/"B➜A" 방향 문자열 → isForward
        direction = data.get("direction")
        if isinstance(direction, str) and not any(k in data for k in ("isForward", "forward", "is_forward")):
            data["isForward"] = not direction.strip().upper().startswith("B")

        # 업스트림 원본은 modificationData 아래에 작성자/작성 시각을 둠
        mod = data.get("modificationData")
        if isinstance(mod, dict):
            for key in ("createdBy", "createdOn"):
                if data.get(key) is None and mod.get(key) is not None:
                    data[key] = mod[key]

        # 좌표가 없으면 폴리라인 중심점 사용
        if data.get("lat") is None or data.get("lon") is None:
            geometry = data.get("geometry") or {}
            coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
            if coords:
                lon, lat = polyline_centroid(coords)
                data["lon"], data["lat"] = lon, lat

        if isinstance(data.get("location"), str) and not data["location"].strip():
            data["location"] = None
        return data

    @field_validator("id", "segment_id", "created_by", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v

    @field_validator("created_on", "start_date", "end_date", mode="before")
    @classmethod
    def _as_epoch_ms(cls, v: Any) -> Any:
        return to_epoch_ms(v)

    @property
    def direction(self) -> str:
        return FORWARD_LABEL if self.is_forward else BACKWARD_LABEL

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


def polyline_centroid(coordinates: List[List[float]]) -> Tuple[float, float]:
    """
    폴리라인 좌표의 산술 평균 중심점을 계산합니다.

    Args:
        coordinates: [[경도, 위도], ...] 또는 단일 [경도, 위도]

    Returns:
        (경도, 위도)
    """
    if coordinates and isinstance(coordinates[0], (int, float)):
        return float(coordinates[0]), float(coordinates[1])
    lons = [float(c[0]) for c in coordinates]
    lats = [float(c[1]) for c in coordinates]
    return sum(lons) / len(lons), sum(lats) / len(lats)


class UploadBatch(BaseModel):
    """/uploadClosures 요청 본문"""
    model_config = ConfigDict(populate_by_name=True)

    user_name: str = Field(validation_alias=AliasChoices("userName", "user_name"))
    closures: List[ClosureEvent] = Field(default_factory=list)


class Webhook(BaseModel):
    """리전별 알림 대상"""
    type: str
    url: str


class Region(BaseModel):
    """운영자가 설정한 리전 (config.json의 regionBoundaries 항목)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    name: str = ""
    x_min: Optional[float] = Field(default=None, validation_alias=AliasChoices("xMin", "x_min"))
    x_max: Optional[float] = Field(default=None, validation_alias=AliasChoices("xMax", "x_max"))
    y_min: Optional[float] = Field(default=None, validation_alias=AliasChoices("yMin", "y_min"))
    y_max: Optional[float] = Field(default=None, validation_alias=AliasChoices("yMax", "y_max"))
    env: Optional[str] = None
    keywords: Tuple[str, ...] = Field(default=(), validation_alias=AliasChoices("locationKeywordsFilter", "keywords"))
    webhooks: Tuple[Webhook, ...] = ()
    external_map_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("departmentOfTransportationUrl", "departmentOfTransporationUrl", "external_map_url"),
    )
    external_map_label: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("departmentOfTransportationName", "departmentOfTransporationName", "external_map_label"),
    )
    group_by_segment: bool = Field(default=True, validation_alias=AliasChoices("groupClosuresBySegment", "group_by_segment"))
    max_closure_age_days: int = Field(
        default=DEFAULT_MAX_CLOSURE_AGE_DAYS,
        validation_alias=AliasChoices("maxClosureAgeDays", "max_closure_age_days"),
    )

    @field_validator("keywords", mode="before")
    @classmethod
    def _lower_keywords(cls, v: Any) -> Any:
        if v is None:
            return ()
        return tuple(str(k).lower() for k in v if str(k).strip())

    def matches(self, location: Optional[str]) -> bool:
        """위치 문자열에 키워드 중 하나라도 포함되면 True"""
        if not location:
            return False
        text = location.lower()
        return any(k in text for k in self.keywords)


class Allowlist(BaseModel):
    """
    업로드 허용 사용자 목록의 정규형.

    설정 파일에는 리스트(전원 승인) 또는 {이름: bool} 맵으로 저장될 수 있으며,
    경계에서 한 번만 이 형태로 변환합니다.
    """
    model_config = ConfigDict(frozen=True)

    approved: frozenset = frozenset()
    known: frozenset = frozenset()

    @classmethod
    def from_raw(cls, raw: Any) -> "Allowlist":
        if raw is None:
            return cls()
        if isinstance(raw, list):
            names = frozenset(str(n) for n in raw)
            return cls(approved=names, known=names)
        if isinstance(raw, dict):
            return cls(
                approved=frozenset(str(k) for k, v in raw.items() if v),
                known=frozenset(str(k) for k in raw),
            )
        raise ValueError(f"unsupported whitelist shape: {type(raw).__name__}")

    def status(self, user: str) -> Literal["approved", "pending", "unknown"]:
        if user in self.approved:
            return "approved"
        if user in self.known:
            return "pending"
        return "unknown"

    def to_raw(self) -> Dict[str, bool]:
        return {name: name in self.approved for name in sorted(self.known)}


class ConfigSnapshot(BaseModel):
    """한 시점의 리전 카탈로그 + 허용 목록 (교체 단위)"""
    model_config = ConfigDict(frozen=True)

    regions: Tuple[Region, ...] = ()
    allowlist: Allowlist = Field(default_factory=Allowlist)
    loaded_at: float = 0.0

    def region(self, name: Optional[str]) -> Optional[Region]:
        for r in self.regions:
            if r.name == name:
                return r
        return None

    @property
    def region_names(self) -> List[str]:
        return [r.name for r in self.regions]


class TrackedEntry(BaseModel):
    """추적 저장소의 한 행"""
    closure_id: str
    first_seen: str
    region: Optional[str] = None


class NotificationGroup(BaseModel):
    """같은 (세그먼트, 리전)으로 묶인 발송 단위. 저장하지 않음."""
    region: str
    events: List[ClosureEvent]

    @model_validator(mode="after")
    def _non_empty(self) -> "NotificationGroup":
        if not self.events:
            raise ValueError("notification group must not be empty")
        return self

    @property
    def is_aggregate(self) -> bool:
        return len(self.events) > 1

    @property
    def segment_id(self) -> str:
        return self.events[0].segment_id


class DeliveryResult(BaseModel):
    """웹훅 한 곳에 대한 발송 결과"""
    destination: str
    url: str
    ok: bool
    status: Optional[int] = None
    attempts: int = 0
    error: Optional[str] = None


# ---- 피처 캐시 레코드 (표시에 필요한 필드만 보관) ----

class UserRecord(BaseModel):
    id: str
    name: Optional[str] = None
    rank: Optional[int] = None

class SegmentRecord(BaseModel):
    id: str
    road_type: Optional[int] = None
    street_id: Optional[str] = None

class StreetRecord(BaseModel):
    id: str
    name: Optional[str] = None
    city_id: Optional[str] = None

class CityRecord(BaseModel):
    id: str
    name: Optional[str] = None
    state_id: Optional[str] = None
    country_id: Optional[str] = None

class StateRecord(BaseModel):
    id: str
    name: Optional[str] = None

class CountryRecord(BaseModel):
    id: str
    name: Optional[str] = None
    abbr: Optional[str] = None


FeatureKind = Literal["users", "segments", "streets", "cities", "states", "countries"]

FEATURE_RECORD_TYPES: Dict[str, type] = {
    "users": UserRecord,
    "segments": SegmentRecord,
    "streets": StreetRecord,
    "cities": CityRecord,
    "states": StateRecord,
    "countries": CountryRecord,
}
