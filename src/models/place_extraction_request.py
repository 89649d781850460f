"""src.models.place_extraction_request
장소 추출 요청 DTO
"""
from pydantic import BaseModel, ConfigDict, Field


class PlaceExtractionRequest(BaseModel):
    """
    장소 추출 요청 DTO
    """
    snsUrl: str = Field(..., description="SNS URL (YouTube, Instagram, TikTok, Reddit)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "snsUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
            }
        }
    )
