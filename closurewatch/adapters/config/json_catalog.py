"""
JSON region catalog for closurewatch.

This module loads the operator configuration file (region boundaries,
webhooks and the uploader allow-list) into an immutable
ConfigSnapshot, hot-reloads it when the file changes, and writes
pending allow-list entries back atomically.
"""

import asyncio
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import validate
from jsonschema.exceptions import ValidationError as SchemaError
from pydantic import ValidationError

from closurewatch.core.models import Allowlist, ConfigSnapshot, Region
from closurewatch.errors import ConfigError
from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.config")

SCHEMA = json.loads((Path(__file__).parent / "config_schema.json").read_text(encoding="utf-8"))


def parse_config(raw: Any) -> ConfigSnapshot:
    """
    config.json 내용을 스냅샷으로 변환합니다.

    Args:
        raw: {"regionBoundaries": {...}, "whitelist": [...] | {...}}

    Returns:
        ConfigSnapshot (리전은 파일에 선언된 순서)

    Raises:
        ConfigError: 형식이 잘못된 경우
    """
    if not isinstance(raw, dict):
        raise ConfigError("config root must be an object")
    try:
        validate(instance=raw, schema=SCHEMA)
    except SchemaError as e:
        path = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config schema validation failed at {path}: {e.message}") from e
    boundaries = raw.get("regionBoundaries") or {}
    if not isinstance(boundaries, dict):
        raise ConfigError("regionBoundaries must be an object")

    regions = []
    for name, body in boundaries.items():
        if not isinstance(body, dict):
            raise ConfigError(f"region {name!r} must be an object")
        try:
            regions.append(Region.model_validate({**body, "name": name}))
        except ValidationError as e:
            raise ConfigError(f"invalid region {name!r}: {e}") from e

    try:
        allowlist = Allowlist.from_raw(raw.get("whitelist"))
    except ValueError as e:
        raise ConfigError(str(e)) from e

    return ConfigSnapshot(regions=tuple(regions), allowlist=allowlist, loaded_at=time.time())


def read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file is not valid JSON: {path}: {e}") from e


def write_json_atomic(path: str, data: Any) -> None:
    """임시 파일에 쓴 뒤 os.replace로 교체합니다."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class ConfigStore:
    """현재 설정 스냅샷의 소유자 (참조 하나를 원자적으로 교체)"""

    def __init__(self, path: str, snapshot: Optional[ConfigSnapshot] = None):
        """
        초기화합니다.

        Args:
            path: config.json 경로
            snapshot: 초기 스냅샷 (테스트용)
        """
        self.path = path
        self._snapshot = snapshot or ConfigSnapshot()
        self._mtime: Optional[float] = None

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    def _file_mtime(self) -> Optional[float]:
        try:
            return os.stat(self.path).st_mtime
        except FileNotFoundError:
            return None

    def load(self) -> ConfigSnapshot:
        """
        설정 파일을 읽어 스냅샷을 교체합니다.

        Raises:
            ConfigError: 파일을 읽거나 해석할 수 없는 경우
        """
        mtime = self._file_mtime()
        snapshot = parse_config(read_config_file(self.path))
        self._snapshot = snapshot
        self._mtime = mtime
        log.info(f"설정 로드 완료 regions:{snapshot.region_names} users:{len(snapshot.allowlist.known)}")
        return snapshot

    def reload(self) -> bool:
        """
        설정을 다시 읽습니다. 실패하면 이전 스냅샷을 유지합니다.

        Returns:
            교체에 성공했으면 True
        """
        try:
            self.load()
            return True
        except ConfigError as e:
            log.error(f"설정 다시 읽기 실패, 이전 설정 유지: {e}")
            return False

    async def watch(self, interval_sec: float = 15.0) -> None:
        """파일 수정 시각을 주기적으로 확인하여 변경 시 다시 읽습니다."""
        log.info(f"설정 감시 시작 path:{self.path} interval:{interval_sec}s")
        while True:
            await asyncio.sleep(interval_sec)
            mtime = self._file_mtime()
            if mtime is not None and mtime != self._mtime:
                if not self.reload():
                    # 같은 파일로 오류 로그를 반복하지 않음
                    self._mtime = mtime

    def provision_user(self, user_name: str) -> bool:
        """
        처음 본 사용자를 승인 대기(false) 상태로 허용 목록에 추가합니다.

        Args:
            user_name: 업로드 사용자 이름

        Returns:
            새로 추가했으면 True
        """
        if self._snapshot.allowlist.status(user_name) != "unknown":
            return False

        try:
            raw = read_config_file(self.path)
        except ConfigError:
            raw = {"regionBoundaries": {}}
        current = Allowlist.from_raw(raw.get("whitelist"))
        if current.status(user_name) == "unknown":
            entries = current.to_raw()
            entries[user_name] = False
            raw["whitelist"] = entries
            write_json_atomic(self.path, raw)

        allowlist = Allowlist(approved=current.approved, known=current.known | {user_name})
        self._snapshot = self._snapshot.model_copy(update={"allowlist": allowlist})
        self._mtime = self._file_mtime()
        log.warning(f"승인 대기 사용자 추가 user:{user_name}")
        return True
