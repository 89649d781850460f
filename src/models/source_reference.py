"""src.models.source_reference
URL로부터 결정적으로 도출되는 콘텐츠 참조 (캐시 키)
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Platform = Literal["youtube", "instagram", "tiktok", "reddit"]
ContentType = Literal["video", "short", "thread", "post"]


class SourceReference(BaseModel):
    """
    콘텐츠 참조

    Snippet
    {
        "platform": "youtube",
        "externalId": "dQw4w9WgXcQ",
        "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "contentType": "video"
    }
    """
    model_config = ConfigDict(frozen=True)

    platform: Platform = Field(..., description="콘텐츠 플랫폼")
    externalId: str = Field(..., description="플랫폼 고유 ID (platform과 함께 캐시 키)")
    url: str = Field(..., description="플랫폼 정규 URL")
    contentType: ContentType = Field(..., description="콘텐츠 유형 (fetcher 선택 기준)")

    @property
    def cache_key(self) -> tuple[str, str]:
        return self.platform, self.externalId
