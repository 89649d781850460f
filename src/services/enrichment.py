"""src.services.enrichment
Place Enrichment Engine

추출된 장소를 장소 API(PlaceDataProvider)로 보강합니다.
- 배치 전체가 공유하는 세마포어로 동시 호출 수를 제한 (기본 3)
- 완료 순서와 무관하게 입력 순서를 유지
- 한 장소의 실패(검색 결과 없음, API 오류, 타임아웃)는 해당 장소만 보강 전 형태로 남기고 배치는 계속 진행
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from src.core.exceptions import EnrichmentDegraded
from src.models import EnrichedPlace, ExtractedPlace, PlaceDetails

logger = logging.getLogger(__name__)

# 먼저 찾은 값 사용
AREA_COMPONENT_PRIORITY = (
    "locality",
    "sublocality_level_1",
    "neighborhood",
    "administrative_area_level_2",
)

CUISINE_TYPES = {
    "ramen_restaurant": "ramen",
    "sushi_restaurant": "sushi",
    "japanese_restaurant": "japanese",
    "korean_restaurant": "korean",
    "chinese_restaurant": "chinese",
    "thai_restaurant": "thai",
    "vietnamese_restaurant": "vietnamese",
    "indian_restaurant": "indian",
    "italian_restaurant": "italian",
    "pizza_restaurant": "pizza",
    "seafood_restaurant": "seafood",
    "steak_house": "steak",
    "vegan_restaurant": "vegan",
    "coffee_shop": "cafe",
    "cafe": "cafe",
    "bakery": "bakery",
    "bar": "bar",
}

PLACE_TYPES = {
    "shopping_mall": "mall",
    "department_store": "department store",
    "zoo": "zoo",
    "aquarium": "aquarium",
    "amusement_park": "theme park",
    "museum": "museum",
    "art_gallery": "gallery",
    "park": "park",
    "hindu_temple": "temple",
    "buddhist_temple": "temple",
    "church": "church",
    "mosque": "mosque",
    "night_club": "nightclub",
    "spa": "spa",
    "lodging": "hotel",
    "stadium": "stadium",
    "tourist_attraction": "attraction",
    "natural_feature": "nature",
}


class PlaceDataProvider(Protocol):
    async def search(self, query: str) -> Optional[str]: ...

    async def details(self, place_id: str) -> Optional[PlaceDetails]: ...


@dataclass
class EnrichmentBatch:
    places: list[EnrichedPlace] = field(default_factory=list)
    degraded: int = 0


def resolve_area_name(address_components: Sequence[dict]) -> Optional[str]:
    for component_type in AREA_COMPONENT_PRIORITY:
        for component in address_components:
            if component_type in (component.get("types") or []) and component.get("long_name"):
                return component["long_name"]
    return None


def provider_categories(types: Sequence[str]) -> tuple[Optional[str], Optional[str]]:
    cuisine = next((CUISINE_TYPES[t] for t in types if t in CUISINE_TYPES), None)
    place_type = next((PLACE_TYPES[t] for t in types if t in PLACE_TYPES), None)
    return cuisine, place_type


def reconcile_categories(place: ExtractedPlace, details: PlaceDetails) -> dict:
    """
    AI가 비워둔 cuisineType/placeType은 장소 API 분류로 채웁니다.
    둘 다 있고 다르면 AI 값을 유지하고 로그만 남깁니다.
    """
    cuisine, place_type = provider_categories(details.types)
    updates = {}
    for field_name, provider_value in (("cuisineType", cuisine), ("placeType", place_type)):
        if provider_value is None:
            continue
        ai_value = getattr(place, field_name)
        if not ai_value:
            updates[field_name] = provider_value
        elif ai_value.strip().lower() != provider_value.lower():
            logger.info(
                f"[Enrichment] 분류 불일치 (AI 값 유지): {place.name} "
                f"{field_name} ai={ai_value} provider={provider_value}"
            )
    return updates


def merge_details(place: ExtractedPlace, details: PlaceDetails) -> EnrichedPlace:
    return EnrichedPlace.from_extracted(
        place.model_copy(update=reconcile_categories(place, details)),
        providerPlaceId=details.placeId,
        rating=details.rating,
        ratingCount=details.ratingCount,
        priceLevel=details.priceLevel,
        formattedAddress=details.formattedAddress,
        areaName=resolve_area_name(details.addressComponents),
        photos=details.photos,
        openingHours=details.openingHours,
        lat=details.lat,
        lng=details.lng,
    )


class PlaceEnrichmentEngine:
    def __init__(self, provider: PlaceDataProvider, concurrency: int = 3, timeout: float = 10):
        self.provider = provider
        self.concurrency = concurrency
        self.timeout = timeout

    async def enrich(self, places: Sequence[ExtractedPlace], location_hint: Optional[str] = None) -> list[EnrichedPlace]:
        return (await self.enrich_batch(places, location_hint)).places

    async def enrich_batch(
        self,
        places: Sequence[ExtractedPlace],
        location_hint: Optional[str] = None,
    ) -> EnrichmentBatch:
        if not places:
            return EnrichmentBatch()

        logger.info(f"[Enrichment] {len(places)}개 장소 보강 시작 (동시 {self.concurrency})")
        # 동시 호출 제한은 배치(파이프라인 실행) 단위입니다. gather는 입력 순서대로 결과를 돌려줍니다.
        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(*(self._enrich_one(p, location_hint, semaphore) for p in places))

        batch = EnrichmentBatch(
            places=[place for place, _ in outcomes],
            degraded=sum(1 for _, ok in outcomes if not ok),
        )
        logger.info(f"[Enrichment] 완료: 성공 {len(places) - batch.degraded} / 실패 {batch.degraded}")
        return batch

    async def _lookup(self, query: str, semaphore: asyncio.Semaphore) -> Optional[PlaceDetails]:
        async with semaphore:
            place_id = await asyncio.wait_for(self.provider.search(query), timeout=self.timeout)
            if not place_id:
                return None
            return await asyncio.wait_for(self.provider.details(place_id), timeout=self.timeout)

    async def _enrich_one(
        self,
        place: ExtractedPlace,
        location_hint: Optional[str],
        semaphore: asyncio.Semaphore,
    ) -> tuple[EnrichedPlace, bool]:
        query = " ".join(part for part in (place.name, place.locationHint or location_hint) if part)
        try:
            details = await self._lookup(query, semaphore)
        except Exception as e:
            degraded = EnrichmentDegraded(f"장소 보강 실패: {query} ({type(e).__name__}: {e})", place.name)
            logger.warning(f"[Enrichment] {degraded.message}")
            return EnrichedPlace.from_extracted(place), False

        if details is None:
            degraded = EnrichmentDegraded(f"장소 검색 결과 없음: {query}", place.name)
            logger.warning(f"[Enrichment] {degraded.message}")
            return EnrichedPlace.from_extracted(place), False

        logger.info(f"[Enrichment] 보강 성공: {place.name} → {details.placeId} (rating={details.rating})")
        return merge_details(place, details), True
