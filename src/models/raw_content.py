"""src.models.raw_content
Source Fetcher의 tier들이 점진적으로 채워가는 원본 콘텐츠 (파이프라인 1회 실행 동안만 존재)
"""
from typing import Optional

from pydantic import BaseModel, Field

TEXT_FIELDS = (
    "title",
    "descriptionText",
    "transcriptText",
    "captionText",
    "mediaUrl",
    "authorName",
    "thumbnailUrl",
)


class RawContent(BaseModel):
    title: Optional[str] = Field(default=None, description="제목")
    descriptionText: Optional[str] = Field(default=None, description="설명/본문")
    transcriptText: Optional[str] = Field(default=None, description="자막/스크립트")
    captionText: Optional[str] = Field(default=None, description="게시물 캡션")
    mediaUrl: Optional[str] = Field(default=None, description="vision 분석용 미디어 참조")
    authorName: Optional[str] = Field(default=None, description="게시자")
    thumbnailUrl: Optional[str] = Field(default=None, description="썸네일 URL")
    commentTexts: list[str] = Field(default_factory=list, description="상위 댓글 (토론 스레드)")
    tiersUsed: list[str] = Field(default_factory=list, description="데이터를 채운 tier 이름")

    def merge(self, other: "RawContent") -> "RawContent":
        """비어있는 필드만 other의 값으로 채운 새 객체를 반환합니다."""
        updates = {}
        for field in TEXT_FIELDS:
            if not getattr(self, field) and getattr(other, field):
                updates[field] = getattr(other, field)
        if not self.commentTexts and other.commentTexts:
            updates["commentTexts"] = list(other.commentTexts)
        return self.model_copy(update=updates)

    def is_empty(self) -> bool:
        return not any(getattr(self, field) for field in TEXT_FIELDS) and not self.commentTexts
