import asyncio
from unittest.mock import patch

import aiosqlite
import pytest

from src.core.exceptions import CacheWriteFailed, CustomError
from src.models import CacheEntry, DiscoveryIntent, EnrichedPlace


def make_entry(**overrides) -> CacheEntry:
    fields = {
        "platform": "youtube",
        "externalId": "dQw4w9WgXcQ",
        "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "title": "Tokyo Ramen Tour",
        "summary": "시부야 라멘 투어",
        "videoType": "places",
        "destination": "Tokyo",
        "destinationCountry": "Japan",
        "places": [EnrichedPlace(name="Ichiran Shibuya", category="food", rating=4.4)],
    }
    fields.update(overrides)
    return CacheEntry(**fields)


class TestCacheGet:
    @pytest.mark.asyncio
    async def test_miss_returns_none_without_side_effects(self, cache):
        await cache.set(make_entry())

        assert await cache.get("youtube", "otherVideo1") is None

        stats = await cache.stats()
        assert stats.totalCached == 1
        assert stats.totalHits == 0

    @pytest.mark.asyncio
    async def test_hit_increments_count_and_last_hit(self, cache, clock):
        await cache.set(make_entry())

        first = await cache.get("youtube", "dQw4w9WgXcQ")
        clock.advance(minutes=5)
        second = await cache.get("youtube", "dQw4w9WgXcQ")

        assert first.hitCount == 1
        assert second.hitCount == 2
        assert second.lastHitAt == clock.now
        assert second.places[0].name == "Ichiran Shibuya"
        assert second.places[0].rating == 4.4

    @pytest.mark.asyncio
    async def test_concurrent_hits_are_all_counted(self, cache):
        await cache.set(make_entry())

        await asyncio.gather(*(cache.get("youtube", "dQw4w9WgXcQ") for _ in range(10)))

        stats = await cache.stats()
        assert stats.totalHits == 10

    @pytest.mark.asyncio
    async def test_read_failure_raises_custom_error(self, cache):
        with patch.object(cache, "_record_hit", side_effect=aiosqlite.OperationalError("database is locked")):
            with pytest.raises(CustomError):
                await cache.get("youtube", "dQw4w9WgXcQ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("column", "value"),
        [
            ("places_json", "not json"),
            ("places_json", '[{"category": "food"}]'),
            ("discovery_intent_json", '{"type": "CULINARY_GOAL"'),
        ],
    )
    async def test_undecodable_row_raises_custom_error(self, cache, column, value):
        await cache.set(make_entry())
        async with aiosqlite.connect(cache.db_path) as conn:
            await conn.execute(f"UPDATE content_cache SET {column} = ?", (value,))
            await conn.commit()

        with pytest.raises(CustomError, match="해석 실패"):
            await cache.get("youtube", "dQw4w9WgXcQ")


class TestCacheSet:
    @pytest.mark.asyncio
    async def test_one_row_per_platform_and_external_id(self, cache):
        await cache.set(make_entry())
        await cache.set(make_entry(title="Tokyo Ramen Tour (edited)"))
        await cache.set(make_entry(platform="reddit", externalId="dQw4w9WgXcQ", url="https://www.reddit.com/comments/x/"))

        stats = await cache.stats()
        assert stats.totalCached == 2

    @pytest.mark.asyncio
    async def test_merge_keeps_existing_values_for_null_fields(self, cache):
        await cache.set(make_entry())

        saved = await cache.set(make_entry(title="New title", summary=None, destination=None, places=None))

        assert saved.title == "New title"
        assert saved.summary == "시부야 라멘 투어"
        assert saved.destination == "Tokyo"
        assert [p.name for p in saved.places] == ["Ichiran Shibuya"]

    @pytest.mark.asyncio
    async def test_merge_preserves_hit_count(self, cache):
        await cache.set(make_entry())
        await cache.get("youtube", "dQw4w9WgXcQ")

        saved = await cache.set(make_entry(summary="updated"))

        assert saved.hitCount == 1
        assert saved.summary == "updated"

    @pytest.mark.asyncio
    async def test_discovery_intent_round_trip(self, cache):
        intent = DiscoveryIntent(type="CULINARY_GOAL", item="Sushi", city="Tokyo", scoutQuery="best Sushi in Tokyo")
        await cache.set(make_entry(places=[], discoveryIntent=intent))

        entry = await cache.get("youtube", "dQw4w9WgXcQ")

        assert entry.places == []
        assert entry.discoveryIntent.scoutQuery == "best Sushi in Tokyo"

    @pytest.mark.asyncio
    async def test_write_failure_raises_cache_write_failed(self, cache):
        with patch.object(cache, "_upsert", side_effect=aiosqlite.OperationalError("disk I/O error")):
            with pytest.raises(CacheWriteFailed):
                await cache.set(make_entry())


class TestCacheExpiry:
    @pytest.mark.asyncio
    async def test_expired_row_is_a_miss(self, cache, clock):
        await cache.set(make_entry(), ttl_days=1)
        clock.advance(days=2)

        assert await cache.get("youtube", "dQw4w9WgXcQ") is None

    @pytest.mark.asyncio
    async def test_expired_row_is_fully_replaced(self, cache, clock):
        await cache.set(make_entry(), ttl_days=1)
        await cache.get("youtube", "dQw4w9WgXcQ")
        clock.advance(days=2)

        saved = await cache.set(make_entry(title="Fresh run", summary=None))

        assert saved.title == "Fresh run"
        assert saved.summary is None
        assert saved.hitCount == 0
        assert saved.expiresAt is None
        assert saved.createdAt == clock.now

    @pytest.mark.asyncio
    async def test_without_ttl_never_expires(self, cache, clock):
        await cache.set(make_entry())
        clock.advance(days=1000)

        assert await cache.get("youtube", "dQw4w9WgXcQ") is not None


class TestCacheMaintenance:
    @pytest.mark.asyncio
    async def test_cleanup_removes_rows_older_than_threshold(self, cache, clock):
        await cache.set(make_entry(externalId="oldVideo001"))
        clock.advance(days=10)
        await cache.set(make_entry(externalId="newVideo001"))

        deleted = await cache.cleanup(older_than_days=5)

        assert deleted == 1
        assert await cache.get("youtube", "oldVideo001") is None
        assert await cache.get("youtube", "newVideo001") is not None

    @pytest.mark.asyncio
    async def test_cleanup_also_removes_expired_rows(self, cache, clock):
        await cache.set(make_entry(), ttl_days=1)
        clock.advance(days=2)

        assert await cache.cleanup(older_than_days=90) == 1

    @pytest.mark.asyncio
    async def test_delete_expired_keeps_live_rows(self, cache, clock):
        await cache.set(make_entry(externalId="shortLived1"), ttl_days=1)
        await cache.set(make_entry(externalId="longLived01"), ttl_days=30)
        clock.advance(days=2)

        assert await cache.delete_expired() == 1
        assert (await cache.stats()).totalCached == 1

    @pytest.mark.asyncio
    async def test_stats_sums_hits(self, cache):
        await cache.set(make_entry(externalId="videoAAAAAA"))
        await cache.set(make_entry(externalId="videoBBBBBB"))
        await cache.get("youtube", "videoAAAAAA")
        await cache.get("youtube", "videoAAAAAA")
        await cache.get("youtube", "videoBBBBBB")

        stats = await cache.stats()

        assert stats.totalCached == 2
        assert stats.totalHits == 3
