"""src.services.content_router.py
SNS URL을 기반으로 플랫폼 및 콘텐츠 유형(video/short/thread/post)을 감지하여 SourceReference를 만들고,
콘텐츠 유형에 맞는 Source Fetcher를 선택하는 라우터 입니다.

유효하지 않은 URL은 네트워크 호출 이전에 InvalidSource로 거부됩니다.
"""
import logging
from typing import Mapping
from urllib.parse import urlparse

from src.core.exceptions import InvalidSource
from src.models import SourceReference
from src.services.fetchers.base import SourceFetcher
from src.services.preprocess.sns import (
    extract_instagram_id,
    extract_reddit_id,
    extract_tiktok_id,
    extract_youtube_id,
    is_youtube_short,
)

logger = logging.getLogger(__name__)


def _host_matches(host: str, domain: str) -> bool:
    """host가 domain 자체이거나 그 서브도메인인지 확인 (notyoutube.com 같은 유사 도메인 거부)"""
    return host == domain or host.endswith(f".{domain}")


# =============================================
# SNS 플랫폼 별 라우팅 함수
# =============================================
def parse_source_reference(url: str) -> SourceReference:
    """
    URL을 분석하여 플랫폼, 외부 ID, 콘텐츠 유형을 결정합니다.

    Args:
        url: YouTube, Instagram, TikTok 또는 Reddit URL

    Raises:
        InvalidSource: 지원하지 않는 플랫폼이거나 유효하지 않은 URL인 경우
    """
    if not url or not isinstance(url, str):
        raise InvalidSource("URL이 비어있습니다")

    url = url.strip()
    if "://" not in url:
        url = f"https://{url}"

    parsed = urlparse(url)
    domain = (parsed.hostname or "").lower()
    if not domain:
        raise InvalidSource(f"유효한 URL이 아닙니다: {url}")

    try:
        # YouTube 체크
        if _host_matches(domain, "youtube.com") or domain == "youtu.be":
            video_id = extract_youtube_id(url)
            if is_youtube_short(url):
                logger.info(f"YouTube Shorts 감지: {video_id}")
                return SourceReference(
                    platform="youtube",
                    externalId=video_id,
                    url=f"https://www.youtube.com/shorts/{video_id}",
                    contentType="short",
                )
            logger.info(f"YouTube 영상 감지: {video_id}")
            return SourceReference(
                platform="youtube",
                externalId=video_id,
                url=f"https://www.youtube.com/watch?v={video_id}",
                contentType="video",
            )

        # Instagram 체크
        if _host_matches(domain, "instagram.com"):
            shortcode, kind = extract_instagram_id(url)
            logger.info(f"Instagram {kind} 감지: {shortcode}")
            if kind == "p":
                return SourceReference(
                    platform="instagram",
                    externalId=shortcode,
                    url=f"https://www.instagram.com/p/{shortcode}/",
                    contentType="post",
                )
            return SourceReference(
                platform="instagram",
                externalId=shortcode,
                url=f"https://www.instagram.com/reel/{shortcode}/",
                contentType="short",
            )

        # TikTok 체크
        if _host_matches(domain, "tiktok.com"):
            username, video_id = extract_tiktok_id(url)
            logger.info(f"TikTok 영상 감지: {video_id}")
            return SourceReference(
                platform="tiktok",
                externalId=video_id,
                url=f"https://www.tiktok.com/@{username}/video/{video_id}",
                contentType="short",
            )

        # Reddit 체크
        if _host_matches(domain, "reddit.com") or domain == "redd.it":
            subreddit, post_id = extract_reddit_id(url)
            logger.info(f"Reddit 스레드 감지: r/{subreddit} {post_id}")
            canonical = (
                f"https://www.reddit.com/r/{subreddit}/comments/{post_id}/"
                if subreddit
                else f"https://www.reddit.com/comments/{post_id}/"
            )
            return SourceReference(
                platform="reddit",
                externalId=post_id,
                url=canonical,
                contentType="thread",
            )
    except ValueError as e:
        raise InvalidSource(str(e)) from e

    # 그 외
    raise InvalidSource(f"지원하지 않는 플랫폼입니다: {domain}")


# =============================================
# Content Type 별 라우팅
# =============================================
class ContentRouter:
    """콘텐츠 유형별 Source Fetcher 매핑"""

    def __init__(self, fetchers: Mapping[str, SourceFetcher]):
        self._fetchers = dict(fetchers)

    def parse(self, url: str) -> SourceReference:
        return parse_source_reference(url)

    def fetcher_for(self, ref: SourceReference) -> SourceFetcher:
        fetcher = self._fetchers.get(ref.contentType)
        if fetcher is None:
            raise InvalidSource(f"지원하지 않는 타입입니다: {ref.platform}/{ref.contentType}")
        return fetcher

    def tier_usage(self) -> dict[str, dict[str, int]]:
        """콘텐츠 유형별 fetcher의 최근 1시간 tier 사용 횟수"""
        return {
            content_type: fetcher.usage.snapshot()
            for content_type, fetcher in self._fetchers.items()
            if getattr(fetcher, "usage", None) is not None
        }
