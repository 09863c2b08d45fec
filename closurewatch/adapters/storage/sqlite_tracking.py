"""
SQLite-based closure tracking store for closurewatch.

This module implements the durable dedup gate: closure id ->
first-seen timestamp and currently assigned region.
"""

import os
from datetime import datetime, timezone
from typing import Dict, List, Optional

import aiosqlite

from closurewatch.core.models import TrackedEntry
from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.tracking")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS tracked (
    id TEXT PRIMARY KEY,
    first_seen TEXT NOT NULL,
    region TEXT
);
CREATE INDEX IF NOT EXISTS idx_tracked_region ON tracked(region);
"""

def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

class SQLiteTrackingStore:
    """SQLite 기반 closure 추적 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteTrackingStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info("SQLiteTrackingStore 스키마 초기화 완료")

    async def is_new(self, closure_id: str) -> bool:
        """
        처음 보는 closure id인지 확인합니다.

        Args:
            closure_id: closure id

        Returns:
            저장소에 없으면 True
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT 1 FROM tracked WHERE id = ?", (closure_id,))
            row = await cursor.fetchone()
            return row is None

    async def record(self, closure_id: str, region: Optional[str], now: Optional[str] = None) -> bool:
        """
        closure를 추적 목록에 기록합니다. 이미 있으면 변경하지 않습니다.

        Args:
            closure_id: closure id
            region: 배정된 리전 이름
            now: 최초 관측 시각 (ISO-8601), None이면 현재 시각

        Returns:
            새로 기록되었으면 True
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO tracked (id, first_seen, region) VALUES (?, ?, ?)",
                (closure_id, now or iso_now(), region)
            )
            await db.commit()
            return cursor.rowcount > 0

    async def reassign(self, closure_id: str, region: str) -> bool:
        """
        기록된 closure의 리전만 변경합니다. 알림을 다시 유발하지 않습니다.

        Returns:
            대상 행이 있었으면 True
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "UPDATE tracked SET region = ? WHERE id = ?",
                (region, closure_id)
            )
            await db.commit()
            if cursor.rowcount:
                log.info(f"closure 리전 재배정 id:{closure_id} region:{region}")
            return cursor.rowcount > 0

    async def forget(self, closure_id: str) -> bool:
        """closure를 추적 목록에서 제거하여 이후 배치에서 다시 평가되게 합니다."""
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("DELETE FROM tracked WHERE id = ?", (closure_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def get(self, closure_id: str) -> Optional[TrackedEntry]:
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT id, first_seen, region FROM tracked WHERE id = ?", (closure_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return TrackedEntry(closure_id=row[0], first_seen=row[1], region=row[2])

    async def entries(self) -> List[TrackedEntry]:
        """
        추적 중인 전체 항목을 최초 관측 순서로 반환합니다.

        Returns:
            TrackedEntry 목록
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT id, first_seen, region FROM tracked ORDER BY first_seen, rowid"
            )
            rows = await cursor.fetchall()
            return [TrackedEntry(closure_id=r[0], first_seen=r[1], region=r[2]) for r in rows]

    async def import_entries(self, entries: Dict[str, TrackedEntry]) -> int:
        """
        여러 항목을 한 트랜잭션으로 가져옵니다. 기존 행은 덮어쓰지 않습니다.

        Returns:
            새로 추가된 행 수
        """
        added = 0
        async with aiosqlite.connect(self.path) as db:
            for closure_id, entry in entries.items():
                cursor = await db.execute(
                    "INSERT OR IGNORE INTO tracked (id, first_seen, region) VALUES (?, ?, ?)",
                    (closure_id, entry.first_seen, entry.region)
                )
                added += cursor.rowcount
            await db.commit()
        return added

    async def get_count(self) -> int:
        """
        현재 저장된 항목 수를 반환합니다.

        Returns:
            항목 수
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM tracked")
            result = await cursor.fetchone()
            return result[0] if result else 0
