"""src.services.modules.places
Google Places Web Service 클라이언트 (PlaceDataProvider 구현)

- search: findplacefromtext → (결과 없으면) textsearch 순으로 place_id 조회
- details: 평점/가격대/사진/영업시간/좌표/주소 구성요소 조회
"""
import logging
from typing import Optional

import httpx

from src.core.exceptions import CustomError
from src.models import Photo, PlaceDetails

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
DETAIL_FIELDS = (
    "place_id,name,formatted_address,rating,user_ratings_total,price_level,"
    "photos,opening_hours,geometry,address_components,types"
)
PHOTO_MAX_WIDTH = 800
MAX_PHOTOS = 5


class PlacesApiError(CustomError):
    """ZERO_RESULTS 이외의 비정상 status"""


def photo_url(photo_reference: str, max_width: int = PHOTO_MAX_WIDTH) -> str:
    # API 키는 응답에 포함하지 않습니다. 클라이언트가 프록시/서명 후 사용합니다.
    return f"{PLACES_BASE_URL}/photo?maxwidth={max_width}&photo_reference={photo_reference}"


def parse_place_details(result: dict) -> PlaceDetails:
    location = (result.get("geometry") or {}).get("location") or {}
    photos = []
    for photo in (result.get("photos") or [])[:MAX_PHOTOS]:
        reference = photo.get("photo_reference")
        if not reference:
            continue
        attributions = photo.get("html_attributions") or []
        photos.append(Photo(
            url=photo_url(reference),
            width=photo.get("width"),
            height=photo.get("height"),
            attribution=attributions[0] if attributions else None,
        ))

    opening_hours = (result.get("opening_hours") or {}).get("weekday_text")

    return PlaceDetails(
        placeId=result["place_id"],
        name=result.get("name"),
        formattedAddress=result.get("formatted_address"),
        rating=result.get("rating"),
        ratingCount=result.get("user_ratings_total"),
        priceLevel=result.get("price_level"),
        photos=photos,
        openingHours=opening_hours or None,
        lat=location.get("lat"),
        lng=location.get("lng"),
        addressComponents=result.get("address_components") or [],
        types=result.get("types") or [],
    )


class GooglePlacesProvider:
    def __init__(self, client: httpx.AsyncClient, api_key: str, timeout: float = 10):
        self._client = client
        self._api_key = api_key
        self.timeout = timeout

    async def _get(self, endpoint: str, params: dict) -> dict:
        response = await self._client.get(
            f"{PLACES_BASE_URL}/{endpoint}/json",
            params={**params, "key": self._api_key},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise PlacesApiError(f"Places API {endpoint} 오류: {status} {data.get('error_message', '')}".strip())
        return data

    async def search(self, query: str) -> Optional[str]:
        data = await self._get(
            "findplacefromtext",
            {"input": query, "inputtype": "textquery", "fields": "place_id"},
        )
        candidates = data.get("candidates") or []
        if candidates:
            return candidates[0]["place_id"]

        # Find Place 결과가 없으면 Text Search로 재시도 (모호한 질의에 유리)
        data = await self._get("textsearch", {"query": query})
        results = data.get("results") or []
        if results:
            return results[0]["place_id"]

        logger.info(f"[Places] 검색 결과 없음: {query}")
        return None

    async def details(self, place_id: str) -> Optional[PlaceDetails]:
        data = await self._get("details", {"place_id": place_id, "fields": DETAIL_FIELDS})
        result = data.get("result")
        if not result:
            return None
        return parse_place_details(result)
