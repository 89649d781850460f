"""src.services.fetchers.base
Source Fetcher 공통 프레임워크

각 플랫폼 fetcher는 풍부한 데이터 → 빈약한 데이터 순으로 정렬된 tier 리스트입니다.
tier는 채울 수 있는 필드만 채운 부분 결과와 완료 여부를 반환하고,
fetcher는 완료된 tier가 나오거나 충분 조건을 만족할 때까지 순서대로 시도합니다.

fetch()는 "데이터 없음"으로는 예외를 던지지 않습니다. 모든 tier가 실패하면
얻을 수 있는 가장 완전한 RawContent(최소한 대체 제목)를 반환합니다.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from src.core.exceptions import InvalidSource, SourceUnavailable
from src.models import RawContent, SourceReference

logger = logging.getLogger(__name__)

PLATFORM_LABELS = {
    "youtube": "YouTube",
    "instagram": "Instagram",
    "tiktok": "TikTok",
    "reddit": "Reddit",
}

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class SourceFetcher(Protocol):
    async def fetch(self, ref: SourceReference) -> RawContent: ...


@dataclass
class TierResult:
    content: RawContent
    complete: bool = False


class FetchTier(ABC):
    """fallback 체인의 전략 하나"""

    name: str = "tier"
    timeout: Optional[float] = None

    @abstractmethod
    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        """
        Args:
            ref: 콘텐츠 참조
            current: 이전 tier들이 지금까지 채운 결과 (읽기 전용)
        """


class TierUsageTracker:
    """
    tier별 최근 1시간 사용 횟수를 집계합니다.
    fallback tier 사용이 임계치를 넘으면 경고를 남깁니다. (상위 tier 장애 신호)
    """

    def __init__(
        self,
        warn_threshold: int = 50,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.warn_threshold = warn_threshold
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque] = defaultdict(deque)

    def _prune(self, tier_name: str, now: float) -> deque:
        hits = self._hits[tier_name]
        while hits and now - hits[0] > self.window_seconds:
            hits.popleft()
        return hits

    def record(self, tier_name: str, is_fallback: bool = False) -> int:
        now = self._clock()
        hits = self._prune(tier_name, now)
        hits.append(now)
        count = len(hits)
        if is_fallback and count == self.warn_threshold:
            logger.warning(f"[TierUsage] fallback tier '{tier_name}' 최근 1시간 사용 {count}회 도달")
        return count

    def snapshot(self) -> dict[str, int]:
        now = self._clock()
        return {name: len(self._prune(name, now)) for name in list(self._hits)}


# =============================================
# Tiered Fetcher
# =============================================
class TieredSourceFetcher:
    """
    tier 리스트를 순서대로 시도하는 fetcher 기본 클래스

    하위 클래스는 tiers를 구성하고 is_sufficient / finalize를 필요에 따라 재정의합니다.
    """

    label = "Fetcher"

    def __init__(
        self,
        tiers: Sequence[FetchTier],
        default_timeout: float = 10,
        usage: Optional[TierUsageTracker] = None,
    ):
        self.tiers = list(tiers)
        self.default_timeout = default_timeout
        self.usage = usage or TierUsageTracker()

    def is_sufficient(self, content: RawContent) -> bool:
        """경로 선택에 필요한 필드가 채워졌는지 여부"""
        return False

    def finalize(self, ref: SourceReference, content: RawContent) -> RawContent:
        """tier 순회 후 기본값을 채웁니다."""
        if not content.title:
            content = content.model_copy(update={"title": fallback_title(ref)})
        return content

    async def fetch(self, ref: SourceReference) -> RawContent:
        try:
            content = await self._walk_tiers(ref)
        except SourceUnavailable as e:
            logger.warning(f"[{self.label}] {e.message}")
            content = RawContent()
        return self.finalize(ref, content)

    async def _walk_tiers(self, ref: SourceReference) -> RawContent:
        content = RawContent()
        succeeded = False

        for index, tier in enumerate(self.tiers, start=1):
            timeout = tier.timeout or self.default_timeout
            logger.info(f"[{self.label}] {index}/{len(self.tiers)} - tier '{tier.name}' 시도 ({ref.externalId})")
            try:
                result = await asyncio.wait_for(tier.fetch(ref, content), timeout=timeout)
            except InvalidSource:
                raise
            except asyncio.TimeoutError:
                logger.warning(f"[{self.label}] tier '{tier.name}' 타임아웃 ({timeout}s)")
                continue
            except Exception as e:
                logger.warning(f"[{self.label}] tier '{tier.name}' 실패: {type(e).__name__}: {e}")
                continue

            succeeded = True
            if not result.content.is_empty():
                content = content.merge(result.content)
                content.tiersUsed.append(tier.name)
                self.usage.record(tier.name, is_fallback=index > 1)

            if result.complete or self.is_sufficient(content):
                logger.info(f"[{self.label}] tier '{tier.name}'에서 충분한 데이터 확보")
                return content

        if not succeeded:
            raise SourceUnavailable(f"모든 tier 실패: {ref.platform}/{ref.externalId}")
        return content


def fallback_title(ref: SourceReference) -> str:
    label = PLATFORM_LABELS.get(ref.platform, ref.platform)
    return f"{label} {ref.contentType} - {ref.externalId}"
