"""
Ingestion endpoint logic for closurewatch.

Each endpoint is a pure function from (raw request body, current
config snapshot) to an EndpointResult describing the response and
the state changes the HTTP layer must apply (allow-list provisioning,
enqueueing a batch).
"""

import json
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from closurewatch.core.models import ConfigSnapshot, TrackedEntry, UploadBatch
from closurewatch.errors import MalformedUploadError

NOT_FOUND = "Not Found"
# 에이전트가 사용자 이름 대신 보내는 자리표시 문자열
PLACEHOLDER_USERS = ("undefined", "null")


class EndpointResult(BaseModel):
    """핸들러 결과 (응답 + 적용할 상태 변경 의도)"""
    status: int
    body: Any = ""
    media_type: str = "text/plain"
    provision: Optional[str] = None
    batch: Optional[UploadBatch] = None


def parse_body(raw: Optional[bytes]) -> dict:
    """
    요청 본문을 JSON 객체로 해석합니다.

    Raises:
        MalformedUploadError: 비어 있거나 JSON 객체가 아닌 경우
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else (raw or "")
    if not text.strip():
        raise MalformedUploadError("Empty request body")
    try:
        data = json.loads(text)
    except ValueError as e:
        raise MalformedUploadError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedUploadError("Request body must be a JSON object")
    return data


def _gate(data: dict, snapshot: ConfigSnapshot) -> Tuple[Optional[EndpointResult], Optional[str]]:
    """허용 목록 검사. 통과하면 (None, 사용자), 아니면 (404 결과, None)."""
    user = data.get("userName")
    if not isinstance(user, str) or not user.strip() or user in PLACEHOLDER_USERS:
        return EndpointResult(status=404, body=NOT_FOUND), None
    status = snapshot.allowlist.status(user)
    if status == "unknown":
        return EndpointResult(status=404, body=NOT_FOUND, provision=user), None
    if status == "pending":
        return EndpointResult(status=404, body=NOT_FOUND), None
    return None, user


def handle_upload(raw: Optional[bytes], snapshot: ConfigSnapshot) -> EndpointResult:
    """
    POST /uploadClosures

    Args:
        raw: 요청 본문
        snapshot: 현재 설정 스냅샷

    Returns:
        EndpointResult (승인된 사용자면 batch 포함)
    """
    try:
        data = parse_body(raw)
    except MalformedUploadError as e:
        return EndpointResult(status=400, body=str(e))

    denied, _ = _gate(data, snapshot)
    if denied is not None:
        return denied

    if not isinstance(data.get("closures", []), list):
        return EndpointResult(status=400, body="closures must be a list")
    try:
        batch = UploadBatch.model_validate(data)
    except ValidationError as e:
        return EndpointResult(status=400, body=f"Malformed closures: {e.error_count()} error(s)")
    return EndpointResult(status=200, body="Upload complete", batch=batch)


def tracked_ids(entries: Iterable[TrackedEntry], snapshot: ConfigSnapshot, env: Optional[str] = None) -> List[str]:
    """env가 주어지면 배정된 리전의 env가 같은 id만 남깁니다."""
    if not env:
        return [e.closure_id for e in entries]
    ids = []
    for entry in entries:
        region = snapshot.region(entry.region)
        if region is not None and region.env == env:
            ids.append(entry.closure_id)
    return ids


def handle_tracked(raw: Optional[bytes], snapshot: ConfigSnapshot, entries: Iterable[TrackedEntry]) -> EndpointResult:
    """
    POST /trackedClosures

    Args:
        raw: 요청 본문 ({userName, env?})
        snapshot: 현재 설정 스냅샷
        entries: 추적 중인 항목

    Returns:
        EndpointResult (본문은 id 목록)
    """
    try:
        data = parse_body(raw)
    except MalformedUploadError as e:
        return EndpointResult(status=400, body=str(e))

    denied, _ = _gate(data, snapshot)
    if denied is not None:
        return denied

    env = data.get("env")
    if env is not None and not isinstance(env, str):
        return EndpointResult(status=400, body="env must be a string")
    return EndpointResult(
        status=200,
        body=tracked_ids(entries, snapshot, env),
        media_type="application/json",
    )
