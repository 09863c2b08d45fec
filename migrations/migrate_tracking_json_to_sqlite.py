"""
JSON 기반 closure 추적 파일을 SQLite로 마이그레이션하는 스크립트.

기존 closure_tracking.json ({id: {firstSeen, country}})을
SQLiteTrackingStore로 옮기며, 이미 있는 행은 덮어쓰지 않습니다.
"""

import json
import sys
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Tuple

from closurewatch.adapters.storage.sqlite_tracking import SQLiteTrackingStore, iso_now
from closurewatch.core.models import TrackedEntry
from closurewatch.main import build_settings
from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.migrate")


def parse_legacy(data: Dict[str, Any]) -> Tuple[Dict[str, TrackedEntry], int]:
    """
    레거시 JSON 항목을 TrackedEntry로 변환합니다.

    Args:
        data: {id: {"firstSeen": ..., "country": ...}}

    Returns:
        (변환된 항목, 건너뛴 항목 수)
    """
    entries: Dict[str, TrackedEntry] = {}
    skipped = 0
    for closure_id, value in data.items():
        if not isinstance(value, dict):
            skipped += 1
            continue
        first_seen = value.get("firstSeen") or iso_now()
        region = value.get("country") or value.get("region")
        entries[str(closure_id)] = TrackedEntry(
            closure_id=str(closure_id), first_seen=str(first_seen), region=region
        )
    return entries, skipped


async def migrate(json_path: str, sqlite_path: str) -> bool:
    """
    JSON 추적 파일을 SQLite로 마이그레이션합니다.

    Args:
        json_path: closure_tracking.json 경로
        sqlite_path: SQLite 데이터베이스 파일 경로

    Returns:
        성공 여부
    """
    if not Path(json_path).exists():
        log.error(f"JSON 파일이 존재하지 않습니다: {json_path}")
        return False

    try:
        with open(json_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"JSON 파일 읽기 실패: {e}")
        return False
    if not isinstance(data, dict):
        log.error("JSON 최상위가 객체가 아닙니다")
        return False
    log.info(f"JSON 파일 로드 완료: {json_path}, 항목 수: {len(data)}")

    store = SQLiteTrackingStore(sqlite_path)
    await store.init()

    entries, invalid = parse_legacy(data)
    added = await store.import_entries(entries)

    log.info("마이그레이션 완료:")
    log.info(f"  - 추가: {added}개")
    log.info(f"  - 건너뜀 (이미 존재): {len(entries) - added}개")
    log.info(f"  - 형식 오류: {invalid}개")
    log.info(f"  - 대상 SQLite 파일: {sqlite_path}")

    final_count = await store.get_count()
    log.info(f"SQLite 저장소 최종 항목 수: {final_count}")
    return invalid == 0


def resolve_paths(argv: List[str], settings) -> Tuple[str, str]:
    """
    명령행 인자가 없으면 설정의 저장소 경로를 사용합니다.

    Args:
        argv: 스크립트 이름을 뺀 인자 [json_file] [sqlite_file]
        settings: closurewatch Settings

    Returns:
        (JSON 경로, SQLite 경로)
    """
    json_path = argv[0] if len(argv) > 0 else settings.storage.legacy_tracking_json
    sqlite_path = argv[1] if len(argv) > 1 else settings.storage.tracking_path
    return json_path, sqlite_path


async def main():
    """메인 함수"""
    if len(sys.argv) > 3:
        print("사용법: python migrate_tracking_json_to_sqlite.py [json_file] [sqlite_file]")
        print("예시: python migrate_tracking_json_to_sqlite.py closure_tracking.json data/tracking.db")
        sys.exit(1)

    json_path, sqlite_path = resolve_paths(sys.argv[1:], build_settings())

    print("마이그레이션 시작:")
    print(f"  - JSON 파일: {json_path}")
    print(f"  - SQLite 파일: {sqlite_path}")
    print()

    success = await migrate(json_path, sqlite_path)
    if success:
        print("마이그레이션이 성공적으로 완료되었습니다.")
        sys.exit(0)
    print("마이그레이션 중 오류가 발생했습니다.")
    sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
