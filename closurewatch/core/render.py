"""
Notification rendering for closurewatch.

This module turns closures into the two webhook payload shapes:
Discord embeds (rich single-message card) and Slack blocks.
All functions are pure and operate on already-enriched closures.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from urllib.parse import quote

from closurewatch.common.geo import bbox_around
from .models import ClosureEvent, Region
from .tiles import TILE_SERVERS, preview_url

ROAD_TYPES: Dict[int, str] = {
    1: "Street",
    2: "Primary Street",
    3: "Freeway (Interstate / Other)",
    4: "Ramp",
    5: "Routable Pedestrian Path",
    6: "Major Highway",
    7: "Minor Highway",
    8: "Off-road / Not maintained",
    9: "Walkway",
    10: "Non-Routable Pedestrian Path",
    15: "Ferry",
    16: "Stairway",
    17: "Private Road",
    18: "Railroad",
    19: "Runway",
    20: "Parking Lot Road",
    22: "Passageway",
}

ROAD_TYPE_COLORS: Dict[int, int] = {
    1: 0xD5D4C4,
    2: 0xD5CF4D,
    3: 0xAF6ABA,
    4: 0x9EA99F,
    5: 0x8E44AD,
    6: 0x3CA3B9,
    7: 0x5EA978,
    8: 0x95A5A6,
    9: 0x7F8C8D,
    10: 0x34495E,
    15: 0x16A085,
    16: 0x27AE60,
    17: 0xA8A45F,
    18: 0x8E44AD,
    19: 0x2980B9,
    20: 0x979797,
    22: 0x2ECC71,
}
DEFAULT_COLOR = 0x3498DB

UNKNOWN = "Unknown"
DEFAULT_EXTERNAL_MAP_LABEL = "DOT"
EDITOR_PROFILE_URL = "https://www.waze.com/user/editor/"
SEARCH_TERMS = (
    "(road | improvements | closure | construction | project | work | detour | "
    "maintenance | closed ) AND (city | town | county | state) -realtor -zillow"
)
# Discord embed 필드 값 최대 길이
FIELD_VALUE_LIMIT = 1024
# Slack section text 최대 길이
SLACK_TEXT_LIMIT = 3000
SLACK_DETAILS_HEADER = "*Closures*\n"


# ---- 공통 라벨/링크 ----

def status_label(status: Optional[str]) -> str:
    """Finished로 시작하는 상태는 Past로 표시합니다."""
    label = status or "New"
    return "Past" if label.startswith("Finished") else label

def road_type_label(event: ClosureEvent) -> str:
    if event.road_type:
        return event.road_type
    if event.road_type_enum is not None:
        return ROAD_TYPES.get(event.road_type_enum, UNKNOWN)
    return UNKNOWN

def road_type_color(event: ClosureEvent) -> int:
    if event.road_type_enum is None:
        return DEFAULT_COLOR
    return ROAD_TYPE_COLORS.get(event.road_type_enum, DEFAULT_COLOR)

def epoch_seconds(ms: int) -> int:
    return int(ms // 1000 + (1 if ms % 1000 >= 500 else 0))

def encode_component(text: str) -> str:
    """encodeURIComponent와 같은 안전 문자 집합으로 인코딩"""
    return quote(text, safe="!*'()~")

def search_url(event: ClosureEvent) -> str:
    query = f"({event.location or UNKNOWN} | {_coord(event.lat)},{_coord(event.lon)}) {SEARCH_TERMS}"
    return f"https://www.google.com/search?q={encode_component(query)}&udm=50"

def editor_url(event: ClosureEvent, env: Optional[str]) -> str:
    return (
        f"https://www.waze.com/en-US/editor?env={env or ''}"
        f"&lat={event.lat:.6f}&lon={event.lon:.6f}"
        f"&zoomLevel=17&segments={event.segment_id}"
    )

def live_map_url(event: ClosureEvent) -> str:
    return f"https://www.waze.com/live-map/directions?to=ll.{event.lat:.6f}%2C{event.lon:.6f}"

def app_url(event: ClosureEvent) -> str:
    return f"https://www.waze.com/ul?ll={event.lat:.6f},{event.lon:.6f}"

def external_map_url(template: str, lat: float, lon: float) -> str:
    """
    리전의 외부 지도 URL 템플릿을 채웁니다.

    {lat}와 {lon}이 각각 두 번씩 있으면 점 주위 ±0.005° 경계 상자를,
    아니면 점 좌표 자체를 넣습니다.
    """
    if template.count("{lat}") == 2 and template.count("{lon}") == 2:
        lon1, lat1, lon2, lat2 = bbox_around(lat, lon)
        url = template.replace("{lat}", f"{lat1:.6f}", 1).replace("{lat}", f"{lat2:.6f}", 1)
        return url.replace("{lon}", f"{lon1:.6f}", 1).replace("{lon}", f"{lon2:.6f}", 1)
    return template.replace("{lat}", f"{lat:.6f}", 1).replace("{lon}", f"{lon:.6f}", 1)

def _coord(value: Optional[float]) -> str:
    return UNKNOWN if value is None else repr(float(value))

def _tile(event: ClosureEvent, region: Region, servers: Sequence[str]) -> Optional[str]:
    if not event.has_coordinates:
        return None
    return preview_url(event.lat, event.lon, region.env, servers)


class LinkSet:
    """한 closure의 딥 링크 모음 (편집기, 라이브맵, 앱, 외부 지도)"""

    def __init__(self, event: ClosureEvent, region: Region):
        self.available = event.has_coordinates
        self.editor = self.live_map = self.app = self.external = None
        self.external_label = region.external_map_label or DEFAULT_EXTERNAL_MAP_LABEL
        if not self.available:
            return
        self.editor = editor_url(event, region.env)
        self.live_map = live_map_url(event)
        self.app = app_url(event)
        if region.external_map_url:
            self.external = external_map_url(region.external_map_url, event.lat, event.lon)

    def markdown(self) -> str:
        if not self.available:
            return UNKNOWN
        text = f"[WME]({self.editor}) | [LiveMap]({self.live_map}) | [App]({self.app})"
        if self.external:
            text += f" | [{self.external_label}]({self.external})"
        return text

    def mrkdwn(self) -> str:
        if not self.available:
            return UNKNOWN
        text = f"<{self.editor}|WME> | <{self.live_map}|LiveMap> | <{self.app}|App>"
        if self.external:
            text += f" | <{self.external}|{self.external_label}>"
        return text


# ---- Discord (Type A) ----

def _discord_user(name: str) -> str:
    return f"[{name}]({EDITOR_PROFILE_URL}{name})"

def _discord_time(ms: int) -> str:
    return f"<t:{epoch_seconds(ms)}:F>"

def _discord_location(event: ClosureEvent) -> str:
    return f"[{event.location or UNKNOWN}]({search_url(event)})"

def _cap_lines(lines: List[str], limit: int = FIELD_VALUE_LIMIT) -> str:
    """필드 길이 제한을 넘으면 뒤쪽 줄을 '…and N more'로 대체합니다."""
    text = "\n".join(lines)
    if len(text) <= limit:
        return text
    kept: List[str] = []
    for i, line in enumerate(lines):
        tail = f"…and {len(lines) - i} more"
        candidate = "\n".join(kept + [line])
        if len(candidate) + 1 + len(f"…and {len(lines) - i - 1} more") > limit:
            return "\n".join(kept + [tail])
        kept.append(line)
    return "\n".join(kept)

def render_discord(event: ClosureEvent, region: Region, servers: Sequence[str] = TILE_SERVERS) -> dict:
    """
    단일 closure용 Discord 웹훅 페이로드를 만듭니다.

    Args:
        event: 보강된 closure
        region: 배정된 리전
        servers: 타일 서버 후보

    Returns:
        {"embeds": [embed]}
    """
    fields = [
        {"name": "User", "value": _discord_user(event.created_by)},
        {"name": "Reported at", "value": _discord_time(event.created_on)},
    ]
    if event.duration:
        fields.append({"name": "Duration", "value": event.duration})
    fields += [
        {"name": "Segment Type", "value": road_type_label(event), "inline": True},
        {"name": "Location", "value": _discord_location(event), "inline": True},
        {"name": "Links", "value": LinkSet(event, region).markdown()},
    ]
    embed = {
        "author": {"name": f"{status_label(event.status)} App Closure ({event.direction})"},
        "color": road_type_color(event),
        "fields": fields,
    }
    tile = _tile(event, region, servers)
    if tile:
        embed["thumbnail"] = {"url": tile}
    return {"embeds": [embed]}

def discord_member_line(index: int, event: ClosureEvent) -> str:
    return (
        f"{index}. **{status_label(event.status)}** ({event.direction}) by {_discord_user(event.created_by)}"
        f" - Duration: {event.duration or UNKNOWN} - {_discord_time(event.created_on)}"
    )

def render_discord_grouped(events: Sequence[ClosureEvent], region: Region,
                           servers: Sequence[str] = TILE_SERVERS) -> dict:
    """같은 세그먼트의 closure 여러 건을 하나의 Discord embed로 묶습니다."""
    first = events[0]
    lines = [discord_member_line(i, e) for i, e in enumerate(events, start=1)]
    embed = {
        "author": {"name": f"{len(events)} App Closures on Same Segment"},
        "color": road_type_color(first),
        "fields": [
            {"name": "Closures", "value": _cap_lines(lines)},
            {"name": "Segment Type", "value": road_type_label(first), "inline": True},
            {"name": "Location", "value": _discord_location(first), "inline": True},
            {"name": "Links", "value": LinkSet(first, region).markdown()},
        ],
    }
    tile = _tile(first, region, servers)
    if tile:
        embed["thumbnail"] = {"url": tile}
    return {"embeds": [embed]}


# ---- Slack (Type B) ----

def _slack_user(name: str) -> str:
    return f"<{EDITOR_PROFILE_URL}{name}|{name}>"

def _slack_time(ms: int) -> str:
    fallback = datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    return f"<!date^{epoch_seconds(ms)}^{{date_long}} {{time}}|{fallback}>"

def _slack_location(event: ClosureEvent) -> str:
    return f"<{search_url(event)}|{event.location or UNKNOWN}>"

def _mrkdwn(text: str) -> dict:
    return {"type": "mrkdwn", "text": text}

def _header_block(text: str, tile: Optional[str]) -> dict:
    block = {"type": "section", "text": _mrkdwn(text)}
    if tile:
        block["accessory"] = {"type": "image", "image_url": tile, "alt_text": "Tile preview"}
    return block

def _segment_location_block(event: ClosureEvent) -> dict:
    return {
        "type": "section",
        "block_id": "segmentLocation",
        "fields": [
            _mrkdwn(f"*Segment Type*\n{road_type_label(event)}"),
            _mrkdwn(f"*Location*\n{_slack_location(event)}"),
        ],
    }

def _links_block(event: ClosureEvent, region: Region) -> dict:
    return {
        "type": "section",
        "block_id": "links",
        "fields": [_mrkdwn(f"*Links*\n• {LinkSet(event, region).mrkdwn()}")],
    }

def render_slack(event: ClosureEvent, region: Region, servers: Sequence[str] = TILE_SERVERS) -> dict:
    """
    단일 closure용 Slack 블록 페이로드를 만듭니다.

    Returns:
        {"blocks": [...]}
    """
    reported = f"*Reported At*\n{_slack_time(event.created_on)}"
    if event.duration:
        reported += f"\n*Duration*\n{event.duration}"
    blocks = [
        _header_block(
            f"*{status_label(event.status)} App Closure ({event.direction})*\n*User*\n{_slack_user(event.created_by)}",
            _tile(event, region, servers),
        ),
        {"type": "section", "block_id": "reportedAt", "fields": [_mrkdwn(reported)]},
        _segment_location_block(event),
        _links_block(event, region),
    ]
    return {"blocks": blocks}

def slack_member_line(index: int, event: ClosureEvent) -> str:
    return (
        f"{index}. *{status_label(event.status)}* ({event.direction}) by {_slack_user(event.created_by)}"
        f" - Duration: {event.duration or UNKNOWN} - {_slack_time(event.created_on)}"
    )

def render_slack_grouped(events: Sequence[ClosureEvent], region: Region,
                         servers: Sequence[str] = TILE_SERVERS) -> dict:
    """같은 세그먼트의 closure 여러 건을 하나의 Slack 메시지로 묶습니다."""
    first = events[0]
    lines = [slack_member_line(i, e) for i, e in enumerate(events, start=1)]
    details = _cap_lines(lines, limit=SLACK_TEXT_LIMIT - len(SLACK_DETAILS_HEADER))
    blocks = [
        _header_block(f"*{len(events)} App Closures on Same Segment*", _tile(first, region, servers)),
        {"type": "section", "block_id": "closureDetails", "text": _mrkdwn(SLACK_DETAILS_HEADER + details)},
        _segment_location_block(first),
        _links_block(first, region),
    ]
    return {"blocks": blocks}
