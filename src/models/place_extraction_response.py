"""src.models.place_extraction_response
장소 추출 응답 DTO (ExtractionResult + cached)
"""
from typing import Literal, Optional

from pydantic import Field

from src.models.enriched_place import EnrichedPlace
from src.models.extraction_result import ExtractionResult


class ProcessContentResponse(ExtractionResult):
    """
    장소 추출 응답 DTO

    ExtractionResult의 모든 필드에 보강된 장소와 캐시/소스 정보를 더합니다.
    """
    places: list[EnrichedPlace] = Field(default_factory=list, description="보강된 장소 리스트")
    cached: bool = Field(default=False, description="캐시 히트 여부")
    hitCount: int = Field(default=0, description="캐시 히트 수")
    platform: str = Field(..., description="플랫폼")
    externalId: str = Field(..., description="플랫폼 고유 ID")
    url: str = Field(..., description="정규 URL")
    title: Optional[str] = Field(default=None, description="제목")
    authorName: Optional[str] = Field(default=None, description="게시자")
    thumbnailUrl: Optional[str] = Field(default=None, description="썸네일")
    analysisPath: Literal["text", "vision", "cache"] = Field(default="text", description="분석 경로")

    model_config = {
        "json_schema_extra": {
            "example": {
                "summary": "시부야 라멘 맛집 방문기",
                "videoType": "places",
                "destination": "Tokyo",
                "destinationCountry": "Japan",
                "places": [
                    {
                        "name": "Ichiran Shibuya",
                        "category": "food",
                        "description": "• 돈코츠 라멘\n• 1인 칸막이 좌석",
                        "cuisineType": "ramen",
                        "rating": 4.3,
                        "areaName": "Shibuya",
                        "photos": [],
                    }
                ],
                "discoveryIntent": None,
                "cached": False,
                "hitCount": 0,
                "platform": "youtube",
                "externalId": "dQw4w9WgXcQ",
                "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "analysisPath": "text",
            }
        }
    }
