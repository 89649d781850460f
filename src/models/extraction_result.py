"""src.models.extraction_result
AI 추출 결과 스키마 (Gemini 응답 JSON 스키마로도 사용됩니다)
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

PLACE_CATEGORIES = ("food", "accommodation", "place", "shopping", "activity", "tip")
VideoType = Literal["places", "guide", "howto"]

_CATEGORY_ALIASES = {
    "restaurant": "food",
    "cafe": "food",
    "bar": "food",
    "hotel": "accommodation",
    "stay": "accommodation",
    "shop": "shopping",
    "store": "shopping",
    "attraction": "place",
    "experience": "activity",
}


class ExtractedPlace(BaseModel):
    """
    추출된 장소

    Snippet
    {
        "name": "Ichiran Shibuya",
        "category": "food",
        "description": "• 24시간 영업\\n• 1인 칸막이 좌석",
        "locationHint": "Shibuya, Tokyo",
        "cuisineType": "ramen",
        "tags": ["ramen", "late-night"]
    }
    """
    name: str = Field(..., description="공식 상호명 (메뉴/활동 설명이 아님)")
    category: str = Field(default="place", description="food | accommodation | place | shopping | activity | tip")
    description: str = Field(default="", description="특징을 담은 불릿 형식 설명")
    locationHint: Optional[str] = Field(default=None, description="지역/도시 힌트")
    parentLocation: Optional[str] = Field(default=None, description="이 장소가 속한 복합 시설명 (몰, 마켓 등)")
    cuisineType: Optional[str] = Field(default=None, description="음식 종류 (food 카테고리)")
    placeType: Optional[str] = Field(default=None, description="장소 종류 (place/activity 카테고리)")
    tags: list[str] = Field(default_factory=list, description="태그")
    day: Optional[int] = Field(default=None, description="가이드 영상의 일차")

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value):
        if not isinstance(value, str):
            return "place"
        lowered = value.strip().lower()
        if lowered in PLACE_CATEGORIES:
            return lowered
        return _CATEGORY_ALIASES.get(lowered, "place")

    @field_validator("tags", mode="before")
    @classmethod
    def drop_null_tags(cls, value):
        return value or []


class GroundedSuggestion(BaseModel):
    name: str = Field(..., description="추천 업체명")
    areaHint: Optional[str] = Field(default=None, description="동네/지역")
    rationale: Optional[str] = Field(default=None, description="추천 근거")
    verified: bool = Field(default=False, description="장소 API 검증 여부 (항상 False)")


class DiscoveryIntent(BaseModel):
    """
    특정 업체를 찾지 못했지만 특정 도시의 특정 음식/활동에 대한 콘텐츠일 때 반환되는 목표

    Snippet
    {"type": "CULINARY_GOAL", "item": "Sushi", "city": "Tokyo", "vibe": "traditional",
     "scoutQuery": "best traditional sushi in Tokyo", "confidenceScore": 0.8}
    """
    type: str = Field(..., description="CULINARY_GOAL | ACTIVITY_GOAL | SIGHTSEEING_GOAL | SHOPPING_GOAL")
    item: str = Field(..., description="음식/활동")
    city: str = Field(..., description="도시")
    vibe: Optional[str] = Field(default=None, description="분위기")
    scoutQuery: Optional[str] = Field(default=None, description="검색용 질의")
    confidenceScore: float = Field(default=0.5, ge=0, le=1, description="신뢰도 (0~1)")
    groundedSuggestions: Optional[list[GroundedSuggestion]] = Field(default=None, description="일반 지식 기반 추천 (미검증)")


class DaySegment(BaseModel):
    day: int = Field(..., description="일차")
    title: Optional[str] = Field(default=None, description="일정 제목")
    places: list[str] = Field(default_factory=list, description="해당 일차에 방문한 장소명")


class ExtractionResult(BaseModel):
    summary: str = Field(default="", description="콘텐츠 요약")
    videoType: VideoType = Field(default="places", description="places | guide | howto")
    destination: Optional[str] = Field(default=None, description="도시")
    destinationCountry: Optional[str] = Field(default=None, description="국가")
    durationDays: Optional[int] = Field(default=None, description="여행 일수 (가이드)")
    places: list[ExtractedPlace] = Field(default_factory=list, description="장소 리스트")
    discoveryIntent: Optional[DiscoveryIntent] = Field(default=None, description="장소가 없을 때의 탐색 목표")
    itinerary: Optional[list[DaySegment]] = Field(default=None, description="일차별 일정 (가이드)")

    @field_validator("places", mode="before")
    @classmethod
    def drop_null_places(cls, value):
        return value or []

    @model_validator(mode="after")
    def clear_intent_when_places(self) -> "ExtractionResult":
        # 장소가 있으면 discoveryIntent는 항상 null
        if self.places:
            self.discoveryIntent = None
        return self

    @property
    def location_hint(self) -> Optional[str]:
        parts = [p for p in (self.destination, self.destinationCountry) if p]
        return ", ".join(parts) if parts else None
