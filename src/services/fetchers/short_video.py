"""src.services.fetchers.short_video
숏폼(세로형) 영상 fetcher: YouTube Shorts, Instagram Reels, TikTok

숏폼은 자막이 빈약하다고 보고 자막 tier를 건너뜁니다.
제목/캡션만 텍스트 컨텍스트로 확보하고, vision 분석용 미디어 참조를 채웁니다.
"""
import asyncio
import logging
from typing import Optional

import httpx

from src.models import RawContent, SourceReference
from src.services.fetchers.base import FetchTier, TieredSourceFetcher, TierResult, TierUsageTracker
from src.services.fetchers.oembed import OEmbedTier
from src.services.fetchers.youtube import youtube_thumbnail
from src.services.preprocess.sns import extract_ytdlp_info, pick_media_url

logger = logging.getLogger(__name__)


def _youtube_watch_url(ref: SourceReference) -> str:
    return f"https://www.youtube.com/watch?v={ref.externalId}"


class YtDlpMediaTier(FetchTier):
    """yt-dlp 메타데이터 + 직접 미디어 URL"""

    name = "ytdlp"

    def __init__(self, timeout: float = 30):
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        info = await asyncio.to_thread(extract_ytdlp_info, ref.url, self.timeout)

        if ref.platform == "youtube":
            media_url = _youtube_watch_url(ref)
        else:
            media_url = pick_media_url(info)
            if not media_url:
                logger.warning(f"[ShortVideo] 미디어 URL을 찾을 수 없습니다 ({ref.externalId})")

        caption = info.get("description") or None
        content = RawContent(
            title=info.get("title") or (caption.split("\n")[0].strip() if caption else None),
            captionText=caption,
            mediaUrl=media_url,
            authorName=info.get("uploader") or info.get("channel") or info.get("creator"),
            thumbnailUrl=info.get("thumbnail"),
        )
        return TierResult(content, complete=bool(content.mediaUrl and content.title))


class ShortVideoFetcher(TieredSourceFetcher):
    label = "ShortVideo"

    def __init__(
        self,
        client: httpx.AsyncClient,
        ytdlp_timeout: float = 30,
        oembed_timeout: float = 10,
        usage: Optional[TierUsageTracker] = None,
    ):
        super().__init__(
            tiers=[
                YtDlpMediaTier(timeout=ytdlp_timeout),
                OEmbedTier(client, timeout=oembed_timeout),
            ],
            default_timeout=ytdlp_timeout,
            usage=usage,
        )

    def is_sufficient(self, content: RawContent) -> bool:
        return bool(content.mediaUrl and content.title)

    def finalize(self, ref: SourceReference, content: RawContent) -> RawContent:
        content = super().finalize(ref, content)
        if ref.platform != "youtube":
            return content
        return content.model_copy(update={
            "mediaUrl": _youtube_watch_url(ref),
            "thumbnailUrl": content.thumbnailUrl or youtube_thumbnail(ref.externalId),
        })
