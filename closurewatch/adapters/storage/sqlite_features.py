"""
SQLite-based feature cache persistence for closurewatch.

Records are append-only: once a (kind, id) row exists it is never
overwritten, matching the immutability of upstream identities.
"""

import json
import os
from typing import Any, Dict, List

import aiosqlite

from closurewatch.core.features import FEATURE_KINDS, FeatureCache
from closurewatch.core.models import FEATURE_RECORD_TYPES
from closurewatch.observability.logging_setup import get_logger

log = get_logger("closurewatch.features")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS features (
    kind TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    PRIMARY KEY (kind, id)
);
"""

class SQLiteFeatureStore:
    """SQLite 기반 피처 캐시 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteFeatureStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info("SQLiteFeatureStore 스키마 초기화 완료")

    async def load(self) -> FeatureCache:
        """
        저장된 전체 레코드로 캐시 스냅샷을 만듭니다.

        Returns:
            FeatureCache
        """
        tables: Dict[str, Dict[str, Any]] = {kind: {} for kind in FEATURE_KINDS}
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT kind, id, data FROM features")
            rows = await cursor.fetchall()
        for kind, record_id, data in rows:
            record_type = FEATURE_RECORD_TYPES.get(kind)
            if record_type is None:
                log.warning(f"알 수 없는 피처 종류 무시 kind:{kind} id:{record_id}")
                continue
            tables[kind][record_id] = record_type.model_validate_json(data)
        cache = FeatureCache(**tables)
        log.info(f"피처 캐시 로드 완료 count:{cache.size()}")
        return cache

    async def save(self, added: Dict[str, List[Any]]) -> int:
        """
        hydrate가 돌려준 신규 레코드를 저장합니다.

        Args:
            added: 종류별 신규 레코드

        Returns:
            실제로 추가된 행 수
        """
        if not added:
            return 0
        inserted = 0
        async with aiosqlite.connect(self.path) as db:
            for kind, records in added.items():
                for record in records:
                    cursor = await db.execute(
                        "INSERT OR IGNORE INTO features (kind, id, data) VALUES (?, ?, ?)",
                        (kind, record.id, json.dumps(record.model_dump()))
                    )
                    inserted += cursor.rowcount
            await db.commit()
        return inserted

    async def get_count(self) -> int:
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM features")
            result = await cursor.fetchone()
            return result[0] if result else 0
