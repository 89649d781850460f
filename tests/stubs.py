"""테스트용 외부 협력자 stub"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional

from src.models import ExtractionContext, ExtractionResult, MediaReference, PlaceDetails, RawContent, SourceReference


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubFetcher:
    def __init__(self, content: RawContent):
        self.content = content
        self.calls = 0

    async def fetch(self, ref: SourceReference) -> RawContent:
        self.calls += 1
        return self.content


class StubAIService:
    """text/vision 호출을 기록하고 미리 정한 결과(또는 예외)를 반환합니다."""

    def __init__(
        self,
        text_result: Optional[ExtractionResult] = None,
        vision_result: Optional[ExtractionResult] = None,
        text_error: Optional[Exception] = None,
        vision_error: Optional[Exception] = None,
    ):
        self.text_result = text_result or ExtractionResult()
        self.vision_result = vision_result or ExtractionResult()
        self.text_error = text_error
        self.vision_error = vision_error
        self.calls: list[str] = []
        self.texts: list[str] = []
        self.media: list[MediaReference] = []
        self.contexts: list[ExtractionContext] = []

    async def extract_text(self, text: str, context: ExtractionContext) -> ExtractionResult:
        self.calls.append("text")
        self.texts.append(text)
        self.contexts.append(context)
        if self.text_error:
            raise self.text_error
        return self.text_result

    async def extract_vision(self, media: MediaReference, context: ExtractionContext) -> ExtractionResult:
        self.calls.append("vision")
        self.media.append(media)
        self.contexts.append(context)
        if self.vision_error:
            raise self.vision_error
        return self.vision_result


class StubPlacesProvider:
    """
    동시 호출 수를 기록하는 장소 API stub

    - failing: 질의가 이 이름으로 시작하면 예외
    - missing: 질의가 이 이름으로 시작하면 검색 결과 없음
    - slow: 질의가 이 이름으로 시작하면 slow_delay 만큼 대기
    """

    def __init__(
        self,
        failing: tuple[str, ...] = (),
        missing: tuple[str, ...] = (),
        slow: tuple[str, ...] = (),
        delay: float = 0.01,
        slow_delay: float = 1.0,
        types: Optional[dict[str, list[str]]] = None,
    ):
        self.failing = failing
        self.missing = missing
        self.slow = slow
        self.delay = delay
        self.slow_delay = slow_delay
        self.types = types or {}
        self.active = 0
        self.max_active = 0
        # 질의 첫 글자별 동시 호출 수 (배치 구분용)
        self.active_by_group: dict[str, int] = {}
        self.max_active_by_group: dict[str, int] = {}
        self.queries: list[str] = []

    async def _track(self, delay: float, query: str) -> None:
        group = query[:1]
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.active_by_group[group] = self.active_by_group.get(group, 0) + 1
        self.max_active_by_group[group] = max(self.max_active_by_group.get(group, 0), self.active_by_group[group])
        try:
            await asyncio.sleep(delay)
        finally:
            self.active -= 1
            self.active_by_group[group] -= 1

    async def search(self, query: str) -> Optional[str]:
        self.queries.append(query)
        delay = self.slow_delay if query.startswith(self.slow) and self.slow else self.delay
        await self._track(delay, query)
        if self.failing and query.startswith(self.failing):
            raise RuntimeError("provider error")
        if self.missing and query.startswith(self.missing):
            return None
        return f"pid:{query}"

    async def details(self, place_id: str) -> PlaceDetails:
        query = place_id.removeprefix("pid:")
        await self._track(self.delay, query)
        name = next((n for n in self.types if query.startswith(n)), None)
        return PlaceDetails(
            placeId=place_id,
            name=query,
            formattedAddress="1-1 Jinnan, Shibuya City, Tokyo",
            rating=4.4,
            ratingCount=1200,
            priceLevel=2,
            lat=35.66,
            lng=139.70,
            addressComponents=[
                {"long_name": "Jinnan", "types": ["sublocality_level_2", "sublocality", "political"]},
                {"long_name": "Shibuya City", "types": ["locality", "political"]},
            ],
            types=self.types.get(name, ["restaurant", "food", "point_of_interest"]),
        )
