"""src.models.enriched_place
장소 API로 보강된 장소 스키마
"""
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.models.extraction_result import ExtractedPlace


class Photo(BaseModel):
    url: str = Field(..., description="사진 URL (API 키 미포함)")
    width: Optional[int] = Field(default=None)
    height: Optional[int] = Field(default=None)
    attribution: Optional[str] = Field(default=None)


class PlaceDetails(BaseModel):
    """장소 API 상세 조회 결과"""
    placeId: str
    name: Optional[str] = None
    formattedAddress: Optional[str] = None
    rating: Optional[float] = None
    ratingCount: Optional[int] = None
    priceLevel: Optional[int] = None
    photos: list[Photo] = Field(default_factory=list)
    openingHours: Optional[list[str]] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    addressComponents: list[dict[str, Any]] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)


class EnrichedPlace(ExtractedPlace):
    """ExtractedPlace + 장소 API 데이터 (모두 best-effort)"""
    providerPlaceId: Optional[str] = Field(default=None, description="장소 API place id")
    rating: Optional[float] = Field(default=None, description="평점")
    ratingCount: Optional[int] = Field(default=None, description="리뷰 수")
    priceLevel: Optional[int] = Field(default=None, description="가격대 (0~4)")
    formattedAddress: Optional[str] = Field(default=None, description="주소")
    areaName: Optional[str] = Field(default=None, description="동네/지역명")
    photos: list[Photo] = Field(default_factory=list, description="사진")
    openingHours: Optional[list[str]] = Field(default=None, description="영업시간")
    lat: Optional[float] = Field(default=None, description="위도")
    lng: Optional[float] = Field(default=None, description="경도")

    @classmethod
    def from_extracted(cls, place: ExtractedPlace, **fields) -> "EnrichedPlace":
        return cls(**place.model_dump(), **fields)
