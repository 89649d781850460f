"""src.services.cache
Content Cache: (platform, externalId)당 1행의 추출 결과 저장소

- get: 만료되지 않은 행만 조회하며, 히트 시 hitCount 증가와 lastHitAt 갱신을 한 트랜잭션에서 처리
- set: upsert. 기존 행이 유효하면 새 값 중 null이 아닌 필드만 덮어쓰고(null은 기존 값 유지),
       만료된 행이면 새 실행 결과로 완전히 교체
- cleanup: 생성 후 N일 지난 행과 만료된 행 삭제
- stats: 전체 행 수와 총 히트 수

aiosqlite 연결은 작업마다 새로 열고, 쓰기는 BEGIN IMMEDIATE 트랜잭션으로 직렬화합니다.
"""
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Protocol, Union

import aiosqlite

from src.core.exceptions import CacheWriteFailed, CustomError
from src.models import CacheEntry, CacheStats, DiscoveryIntent, EnrichedPlace

logger = logging.getLogger(__name__)

# 병합 대상 콘텐츠 컬럼 (CacheEntry 필드 → 컬럼)
CONTENT_COLUMNS = {
    "url": "url",
    "title": "title",
    "authorName": "author_name",
    "thumbnailUrl": "thumbnail_url",
    "transcriptText": "transcript_text",
    "summary": "summary",
    "videoType": "video_type",
    "destination": "destination",
    "destinationCountry": "destination_country",
    "places": "places_json",
    "discoveryIntent": "discovery_intent_json",
}

SCHEMA = """
CREATE TABLE IF NOT EXISTS content_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    platform TEXT NOT NULL,
    external_id TEXT NOT NULL,
    url TEXT,
    title TEXT,
    author_name TEXT,
    thumbnail_url TEXT,
    transcript_text TEXT,
    summary TEXT,
    video_type TEXT,
    destination TEXT,
    destination_country TEXT,
    places_json TEXT,
    discovery_intent_json TEXT,
    created_at TEXT NOT NULL,
    expires_at TEXT,
    hit_count INTEGER NOT NULL DEFAULT 0,
    last_hit_at TEXT,
    UNIQUE(platform, external_id)
);
CREATE INDEX IF NOT EXISTS idx_content_cache_created_at ON content_cache(created_at);
CREATE INDEX IF NOT EXISTS idx_content_cache_expires_at ON content_cache(expires_at);
"""

_EXPIRED = "(content_cache.expires_at IS NOT NULL AND content_cache.expires_at <= :now)"


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # 고정 폭 포맷이어야 문자열 비교가 시간 비교와 일치합니다.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _build_upsert_sql() -> str:
    columns = ["platform", "external_id", *CONTENT_COLUMNS.values(), "created_at", "expires_at", "hit_count", "last_hit_at"]
    placeholders = ", ".join(f":{c}" for c in columns)
    merge = ",\n    ".join(
        f"{c} = CASE WHEN {_EXPIRED} THEN excluded.{c} ELSE COALESCE(excluded.{c}, content_cache.{c}) END"
        for c in CONTENT_COLUMNS.values()
    )
    return f"""
INSERT INTO content_cache ({", ".join(columns)})
VALUES ({placeholders})
ON CONFLICT(platform, external_id) DO UPDATE SET
    {merge},
    created_at = CASE WHEN {_EXPIRED} THEN excluded.created_at ELSE content_cache.created_at END,
    hit_count = CASE WHEN {_EXPIRED} THEN 0 ELSE content_cache.hit_count END,
    last_hit_at = CASE WHEN {_EXPIRED} THEN NULL ELSE content_cache.last_hit_at END,
    expires_at = COALESCE(excluded.expires_at, CASE WHEN {_EXPIRED} THEN NULL ELSE content_cache.expires_at END)
"""


UPSERT_SQL = _build_upsert_sql()


class ContentCache(Protocol):
    async def get(self, platform: str, external_id: str) -> Optional[CacheEntry]: ...

    async def set(self, entry: CacheEntry, ttl_days: Optional[int] = None) -> CacheEntry: ...

    async def cleanup(self, older_than_days: int = 90) -> int: ...

    async def delete_expired(self) -> int: ...

    async def stats(self) -> CacheStats: ...


class SqliteContentCache:
    def __init__(
        self,
        db_path: Union[str, Path],
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.db_path = str(db_path)
        self._clock = clock
        self._initialized = False

    def _connect(self) -> aiosqlite.Connection:
        # isolation_level=None: 트랜잭션은 BEGIN/COMMIT으로 직접 관리합니다.
        return aiosqlite.connect(self.db_path, timeout=10, isolation_level=None)

    async def init(self) -> None:
        """테이블과 인덱스를 생성합니다. 여러 번 호출해도 안전합니다."""
        if self._initialized:
            return
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as conn:
            await conn.executescript(SCHEMA)
        self._initialized = True
        logger.info(f"[Cache] DB 초기화 완료: {self.db_path}")

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        await self.init()
        async with self._connect() as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

    def _now(self) -> str:
        return _format_ts(self._clock())

    # =============================================
    # 직렬화
    # =============================================
    @staticmethod
    def _entry_to_params(entry: CacheEntry) -> dict:
        params = {
            column: getattr(entry, field)
            for field, column in CONTENT_COLUMNS.items()
            if field not in ("places", "discoveryIntent")
        }
        params["places_json"] = (
            json.dumps([p.model_dump(mode="json") for p in entry.places], ensure_ascii=False)
            if entry.places is not None
            else None
        )
        params["discovery_intent_json"] = (
            entry.discoveryIntent.model_dump_json() if entry.discoveryIntent is not None else None
        )
        params.update({"platform": entry.platform, "external_id": entry.externalId})
        return params

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> CacheEntry:
        """JSON이나 스키마가 깨진 행은 ValueError(ValidationError 포함)를 발생시킵니다."""
        places = json.loads(row["places_json"]) if row["places_json"] else []
        intent = row["discovery_intent_json"]
        return CacheEntry(
            platform=row["platform"],
            externalId=row["external_id"],
            url=row["url"],
            title=row["title"],
            authorName=row["author_name"],
            thumbnailUrl=row["thumbnail_url"],
            transcriptText=row["transcript_text"],
            summary=row["summary"],
            videoType=row["video_type"],
            destination=row["destination"],
            destinationCountry=row["destination_country"],
            places=[EnrichedPlace.model_validate(p) for p in places],
            discoveryIntent=DiscoveryIntent.model_validate_json(intent) if intent else None,
            createdAt=_parse_ts(row["created_at"]),
            expiresAt=_parse_ts(row["expires_at"]),
            hitCount=row["hit_count"],
            lastHitAt=_parse_ts(row["last_hit_at"]),
        )

    # =============================================
    # SQL 실행
    # =============================================
    async def _record_hit(self, platform: str, external_id: str) -> Optional[aiosqlite.Row]:
        now = self._now()
        # 히트 증가와 조회를 하나의 쓰기 트랜잭션으로 묶습니다.
        async with self._transaction() as conn:
            cursor = await conn.execute(
                """
                UPDATE content_cache
                SET hit_count = hit_count + 1, last_hit_at = :now
                WHERE platform = :platform AND external_id = :external_id
                  AND (expires_at IS NULL OR expires_at > :now)
                """,
                {"now": now, "platform": platform, "external_id": external_id},
            )
            if cursor.rowcount == 0:
                return None
            cursor = await conn.execute(
                "SELECT * FROM content_cache WHERE platform = ? AND external_id = ?",
                (platform, external_id),
            )
            return await cursor.fetchone()

    async def _upsert(self, entry: CacheEntry, ttl_days: Optional[int]) -> aiosqlite.Row:
        now_dt = self._clock()
        expires_at = now_dt + timedelta(days=ttl_days) if ttl_days is not None else entry.expiresAt
        params = self._entry_to_params(entry)
        params.update({
            "now": _format_ts(now_dt),
            "created_at": _format_ts(now_dt),
            "expires_at": _format_ts(expires_at),
            "hit_count": 0,
            "last_hit_at": None,
        })
        async with self._transaction() as conn:
            await conn.execute(UPSERT_SQL, params)
            cursor = await conn.execute(
                "SELECT * FROM content_cache WHERE platform = ? AND external_id = ?",
                (entry.platform, entry.externalId),
            )
            return await cursor.fetchone()

    async def _delete(self, where: str, params: tuple) -> int:
        async with self._transaction() as conn:
            cursor = await conn.execute(f"DELETE FROM content_cache WHERE {where}", params)
            return cursor.rowcount

    # =============================================
    # 공개 인터페이스
    # =============================================
    async def get(self, platform: str, external_id: str) -> Optional[CacheEntry]:
        try:
            row = await self._record_hit(platform, external_id)
        except aiosqlite.Error as e:
            raise CustomError(f"캐시 조회 실패: {e}") from e
        if row is None:
            logger.info(f"[Cache] MISS {platform}/{external_id}")
            return None

        try:
            entry = self._row_to_entry(row)
        except ValueError as e:
            raise CustomError(f"캐시 행 해석 실패 ({platform}/{external_id}): {type(e).__name__}") from e
        logger.info(f"[Cache] HIT {platform}/{external_id} (hitCount={entry.hitCount})")
        return entry

    async def set(self, entry: CacheEntry, ttl_days: Optional[int] = None) -> CacheEntry:
        try:
            row = await self._upsert(entry, ttl_days)
            saved = self._row_to_entry(row)
        except (aiosqlite.Error, ValueError) as e:
            raise CacheWriteFailed(f"캐시 저장 실패 ({entry.platform}/{entry.externalId}): {e}") from e
        logger.info(f"[Cache] 저장 완료 {entry.platform}/{entry.externalId} (expiresAt={saved.expiresAt})")
        return saved

    async def cleanup(self, older_than_days: int = 90) -> int:
        now_dt = self._clock()
        cutoff = _format_ts(now_dt - timedelta(days=older_than_days))
        deleted = await self._delete(
            "created_at < ? OR (expires_at IS NOT NULL AND expires_at <= ?)",
            (cutoff, _format_ts(now_dt)),
        )
        logger.info(f"[Cache] 정리 완료: {deleted}행 삭제 ({older_than_days}일 경과 또는 만료)")
        return deleted

    async def delete_expired(self) -> int:
        deleted = await self._delete("expires_at IS NOT NULL AND expires_at <= ?", (self._now(),))
        logger.info(f"[Cache] 만료 행 삭제: {deleted}행")
        return deleted

    async def stats(self) -> CacheStats:
        await self.init()
        async with self._connect() as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute(
                "SELECT COUNT(*) AS total_cached, COALESCE(SUM(hit_count), 0) AS total_hits FROM content_cache"
            )
            row = await cursor.fetchone()
        return CacheStats(totalCached=row["total_cached"], totalHits=row["total_hits"])
