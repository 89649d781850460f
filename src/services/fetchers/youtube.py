"""src.services.fetchers.youtube
YouTube 장편 영상 fetcher

Tier 순서
1. watch_page: watch 페이지(residential proxy 경유 가능)의 player JSON에서 제목/설명/채널과 자막 트랙을 파싱
2. ytdlp: yt-dlp 메타데이터 + 영어 VTT 자막
3. oembed: 제목/채널/썸네일만 (자막 없음)
"""
import asyncio
import json
import logging
import re
from typing import Optional

import httpx

from src.models import RawContent, SourceReference
from src.services.fetchers.base import (
    BROWSER_USER_AGENT,
    FetchTier,
    TieredSourceFetcher,
    TierResult,
    TierUsageTracker,
)
from src.services.fetchers.oembed import OEmbedTier
from src.services.preprocess.sns import (
    extract_ytdlp_info,
    parse_timedtext_xml,
    parse_vtt_to_text,
    pick_subtitle_url,
)

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()


def youtube_thumbnail(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


# =============================================
# watch 페이지 파싱
# =============================================
def _json_string_field(page: str, key: str) -> Optional[str]:
    """player JSON 안의 "key":"..." 문자열 값을 디코딩해 반환합니다."""
    match = re.search(rf'"{key}":"((?:[^"\\]|\\.)*)"', page)
    if not match:
        return None
    try:
        return json.loads(f'"{match.group(1)}"')
    except json.JSONDecodeError:
        return match.group(1)


def _caption_tracks(page: str) -> list[dict]:
    index = page.find('"captionTracks":')
    if index < 0:
        return []
    try:
        tracks, _ = _decoder.raw_decode(page, index + len('"captionTracks":'))
    except json.JSONDecodeError:
        return []
    return tracks if isinstance(tracks, list) else []


def pick_caption_track(tracks: list[dict], lang: str = "en") -> Optional[dict]:
    """영어 수동 자막 → 영어 자동 자막 → 첫 번째 트랙 순으로 선택합니다."""
    english = [t for t in tracks if (t.get("languageCode") or "").startswith(lang)]
    manual = [t for t in english if t.get("kind") != "asr"]
    for candidates in (manual, english, tracks):
        if candidates:
            return candidates[0]
    return None


def parse_watch_page(page: str) -> dict:
    """
    watch 페이지 HTML에서 메타데이터와 자막 트랙을 추출합니다.

    Returns:
        dict: {"title", "description", "author", "captionTracks"}
    """
    title = None
    details_index = page.find('"videoDetails":')
    if details_index >= 0:
        title = _json_string_field(page[details_index:], "title")
    return {
        "title": title or _json_string_field(page, "title"),
        "description": _json_string_field(page, "shortDescription"),
        "author": _json_string_field(page, "author"),
        "captionTracks": _caption_tracks(page),
    }


class WatchPageTier(FetchTier):
    name = "watch_page"

    def __init__(self, client: httpx.AsyncClient, min_chars: int = 100, timeout: float = 10):
        # client는 residential proxy가 설정된 클라이언트일 수 있습니다.
        self._client = client
        self.min_chars = min_chars
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        watch_url = f"https://www.youtube.com/watch?v={ref.externalId}"
        response = await self._client.get(
            watch_url,
            headers={"User-Agent": BROWSER_USER_AGENT, "Accept-Language": "en-US,en;q=0.9"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        parsed = parse_watch_page(response.text)

        transcript = None
        track = pick_caption_track(parsed["captionTracks"])
        if track and track.get("baseUrl"):
            logger.info(f"[YouTube] 자막 트랙 발견: {track.get('languageCode')} ({ref.externalId})")
            caption_response = await self._client.get(track["baseUrl"], timeout=self.timeout)
            caption_response.raise_for_status()
            transcript = parse_timedtext_xml(caption_response.text) or None
        else:
            logger.info(f"[YouTube] 자막 트랙 없음 ({ref.externalId})")

        content = RawContent(
            title=parsed["title"],
            descriptionText=parsed["description"],
            transcriptText=transcript,
            authorName=parsed["author"],
        )
        return TierResult(content, complete=bool(transcript) and len(transcript) > self.min_chars)


class YtDlpSubtitleTier(FetchTier):
    name = "ytdlp"

    def __init__(self, client: httpx.AsyncClient, min_chars: int = 100, timeout: float = 30):
        self._client = client
        self.min_chars = min_chars
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        info = await asyncio.to_thread(extract_ytdlp_info, ref.url, self.timeout)

        transcript = None
        subtitle_url = pick_subtitle_url(info)
        if subtitle_url:
            response = await self._client.get(subtitle_url, timeout=self.timeout)
            response.raise_for_status()
            transcript = parse_vtt_to_text(response.text) or None

        content = RawContent(
            title=info.get("title"),
            descriptionText=info.get("description"),
            transcriptText=transcript,
            authorName=info.get("uploader") or info.get("channel"),
            thumbnailUrl=info.get("thumbnail"),
        )
        return TierResult(content, complete=bool(transcript) and len(transcript) > self.min_chars)


# =============================================
# Fetcher
# =============================================
class YouTubeVideoFetcher(TieredSourceFetcher):
    label = "YouTube"

    def __init__(
        self,
        client: httpx.AsyncClient,
        proxy_client: Optional[httpx.AsyncClient] = None,
        min_chars: int = 100,
        fetch_timeout: float = 10,
        ytdlp_timeout: float = 30,
        oembed_timeout: float = 10,
        usage: Optional[TierUsageTracker] = None,
    ):
        self.min_chars = min_chars
        super().__init__(
            tiers=[
                WatchPageTier(proxy_client or client, min_chars=min_chars, timeout=fetch_timeout),
                YtDlpSubtitleTier(client, min_chars=min_chars, timeout=ytdlp_timeout),
                OEmbedTier(client, timeout=oembed_timeout),
            ],
            default_timeout=fetch_timeout,
            usage=usage,
        )

    def is_sufficient(self, content: RawContent) -> bool:
        return bool(content.transcriptText) and len(content.transcriptText) > self.min_chars

    def finalize(self, ref: SourceReference, content: RawContent) -> RawContent:
        content = super().finalize(ref, content)
        # Gemini는 YouTube URL을 직접 분석하므로 다운로드가 필요 없습니다.
        return content.model_copy(update={
            "mediaUrl": content.mediaUrl or ref.url,
            "thumbnailUrl": content.thumbnailUrl or youtube_thumbnail(ref.externalId),
        })
