"""src.services.fetchers.oembed
공개 oEmbed 엔드포인트로 제목/게시자/썸네일만 조회하는 메타데이터 tier
"""
import logging

import httpx

from src.models import RawContent, SourceReference
from src.services.fetchers.base import FetchTier, TierResult

logger = logging.getLogger(__name__)

OEMBED_ENDPOINTS = {
    "youtube": "https://www.youtube.com/oembed",
    "tiktok": "https://www.tiktok.com/oembed",
}


class OEmbedTier(FetchTier):
    """metadata-only tier. 항상 complete=False"""

    name = "oembed"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10):
        self._client = client
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        endpoint = OEMBED_ENDPOINTS.get(ref.platform)
        if endpoint is None:
            logger.info(f"[oEmbed] {ref.platform}는 공개 oEmbed를 지원하지 않습니다")
            return TierResult(RawContent())

        response = await self._client.get(
            endpoint,
            params={"url": ref.url, "format": "json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()

        return TierResult(
            RawContent(
                title=data.get("title"),
                authorName=data.get("author_name"),
                thumbnailUrl=data.get("thumbnail_url"),
            ),
            complete=False,
        )
