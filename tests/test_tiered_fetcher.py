import asyncio
from typing import Optional

import pytest

from src.core.exceptions import InvalidSource
from src.models import RawContent, SourceReference
from src.services.fetchers.base import (
    FetchTier,
    TieredSourceFetcher,
    TierResult,
    TierUsageTracker,
    fallback_title,
)

REF = SourceReference(
    platform="youtube",
    externalId="dQw4w9WgXcQ",
    url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    contentType="video",
)


class StaticTier(FetchTier):
    def __init__(
        self,
        name: str,
        content: Optional[RawContent] = None,
        complete: bool = False,
        error: Optional[Exception] = None,
        delay: float = 0,
        timeout: Optional[float] = None,
    ):
        self.name = name
        self.content = content or RawContent()
        self.complete = complete
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self.calls = 0
        self.seen: list[RawContent] = []

    async def fetch(self, ref, current):
        self.calls += 1
        self.seen.append(current)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return TierResult(self.content, self.complete)


class TranscriptFetcher(TieredSourceFetcher):
    label = "Test"

    def is_sufficient(self, content):
        return bool(content.transcriptText)


class TestTierWalk:
    @pytest.mark.asyncio
    async def test_stops_at_first_complete_tier(self):
        first = StaticTier("first", RawContent(title="Rich"), complete=True)
        second = StaticTier("second", RawContent(title="Poor"))

        content = await TieredSourceFetcher([first, second]).fetch(REF)

        assert content.title == "Rich"
        assert content.tiersUsed == ["first"]
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_failed_tier_falls_through(self):
        first = StaticTier("first", error=RuntimeError("403 blocked"))
        second = StaticTier("second", RawContent(title="From oEmbed"))

        content = await TieredSourceFetcher([first, second]).fetch(REF)

        assert content.title == "From oEmbed"
        assert content.tiersUsed == ["second"]

    @pytest.mark.asyncio
    async def test_tier_timeout_is_a_failure(self):
        slow = StaticTier("slow", RawContent(title="Too late"), complete=True, delay=1, timeout=0.05)
        fast = StaticTier("fast", RawContent(title="Fast"))

        content = await TieredSourceFetcher([slow, fast]).fetch(REF)

        assert content.title == "Fast"
        assert content.tiersUsed == ["fast"]

    @pytest.mark.asyncio
    async def test_later_tiers_only_fill_missing_fields(self):
        first = StaticTier("first", RawContent(title="Original", authorName="Food Ranger"))
        second = StaticTier("second", RawContent(title="Other", transcriptText="ramen ramen ramen"))

        content = await TieredSourceFetcher([first, second]).fetch(REF)

        assert content.title == "Original"
        assert content.authorName == "Food Ranger"
        assert content.transcriptText == "ramen ramen ramen"
        assert content.tiersUsed == ["first", "second"]
        assert second.seen[0].title == "Original"

    @pytest.mark.asyncio
    async def test_sufficient_content_stops_walk(self):
        first = StaticTier("first", RawContent(transcriptText="enough"))
        second = StaticTier("second", RawContent(title="unused"))

        content = await TranscriptFetcher([first, second]).fetch(REF)

        assert second.calls == 0
        assert content.transcriptText == "enough"

    @pytest.mark.asyncio
    async def test_all_tiers_failed_returns_fallback_title(self):
        tiers = [StaticTier("a", error=RuntimeError("boom")), StaticTier("b", error=ValueError("bad json"))]

        content = await TieredSourceFetcher(tiers).fetch(REF)

        assert content.title == "YouTube video - dQw4w9WgXcQ"
        assert content.tiersUsed == []

    @pytest.mark.asyncio
    async def test_invalid_source_propagates(self):
        tiers = [StaticTier("a", error=InvalidSource("private video")), StaticTier("b", RawContent(title="x"))]

        with pytest.raises(InvalidSource):
            await TieredSourceFetcher(tiers).fetch(REF)


class TestTierUsageTracker:
    def test_counts_within_window(self):
        now = [0.0]
        tracker = TierUsageTracker(window_seconds=3600, clock=lambda: now[0])

        tracker.record("oembed", is_fallback=True)
        now[0] = 1800
        tracker.record("oembed", is_fallback=True)
        assert tracker.snapshot() == {"oembed": 2}

        now[0] = 4000
        assert tracker.snapshot() == {"oembed": 1}

    def test_warns_when_fallback_threshold_reached(self, caplog):
        tracker = TierUsageTracker(warn_threshold=3, clock=lambda: 0.0)

        with caplog.at_level("WARNING"):
            for _ in range(3):
                tracker.record("ytdlp", is_fallback=True)

        assert "fallback tier 'ytdlp'" in caplog.text

    @pytest.mark.asyncio
    async def test_fetcher_records_tier_usage(self):
        tracker = TierUsageTracker()
        tiers = [StaticTier("a", error=RuntimeError("boom")), StaticTier("b", RawContent(title="ok"))]

        await TieredSourceFetcher(tiers, usage=tracker).fetch(REF)

        assert tracker.snapshot() == {"b": 1}


def test_fallback_title_uses_platform_label():
    ref = SourceReference(platform="tiktok", externalId="723", url="https://www.tiktok.com/@a/video/723", contentType="short")

    assert fallback_title(ref) == "TikTok short - 723"
