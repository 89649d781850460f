"""src.models.extraction_context
AI 추출 호출에 함께 전달되는 컨텍스트와 vision 분석용 미디어 참조
"""
from typing import Optional

from pydantic import BaseModel, Field


class ExtractionContext(BaseModel):
    platform: str = Field(..., description="플랫폼")
    contentType: str = Field(..., description="콘텐츠 유형")
    title: Optional[str] = Field(default=None, description="제목")
    authorName: Optional[str] = Field(default=None, description="게시자")
    captionText: Optional[str] = Field(default=None, description="vision 경로에 함께 넘기는 캡션/설명")


class MediaReference(BaseModel):
    url: str = Field(..., description="미디어 URL (YouTube는 watch URL)")
    platform: str = Field(..., description="플랫폼")

    @property
    def is_youtube(self) -> bool:
        return self.platform == "youtube"
