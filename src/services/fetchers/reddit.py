"""src.services.fetchers.reddit
Reddit 토론 스레드 fetcher

공개 JSON 인터페이스(<permalink>.json)로 본문과 상위 댓글을 가져오는 단일 tier입니다.
fallback tier는 없습니다.
"""
import logging
from typing import Optional

import httpx

from src.models import RawContent, SourceReference
from src.services.fetchers.base import FetchTier, TieredSourceFetcher, TierResult, TierUsageTracker

logger = logging.getLogger(__name__)

REDDIT_USER_AGENT = "Mozilla/5.0 (compatible; PlaceExtractor/1.0)"
MIN_COMMENT_CHARS = 10


def parse_reddit_listing(data: list, top_n: int = 5) -> RawContent:
    """
    Reddit 스레드 JSON(listing 2개: 게시물, 댓글)을 RawContent로 변환합니다.
    """
    post = data[0]["data"]["children"][0]["data"]

    comments = []
    children = data[1]["data"]["children"] if len(data) > 1 else []
    for child in children:
        if child.get("kind") != "t1":
            continue
        body = (child.get("data", {}).get("body") or "").strip()
        if len(body) > MIN_COMMENT_CHARS and body not in ("[deleted]", "[removed]"):
            comments.append(body)
        if len(comments) >= top_n:
            break

    thumbnail = post.get("thumbnail")
    return RawContent(
        title=post.get("title"),
        descriptionText=post.get("selftext") or None,
        authorName=post.get("author"),
        thumbnailUrl=thumbnail if thumbnail and thumbnail.startswith("http") else None,
        commentTexts=comments,
    )


class RedditJsonTier(FetchTier):
    name = "reddit_json"

    def __init__(self, client: httpx.AsyncClient, top_n: int = 5, timeout: float = 10):
        self._client = client
        self.top_n = top_n
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        response = await self._client.get(
            f"{ref.url.rstrip('/')}.json",
            params={"raw_json": 1},
            headers={"User-Agent": REDDIT_USER_AGENT},
            timeout=self.timeout,
            follow_redirects=True,
        )
        response.raise_for_status()
        content = parse_reddit_listing(response.json(), top_n=self.top_n)
        logger.info(f"[Reddit] 본문 {len(content.descriptionText or '')}자, 댓글 {len(content.commentTexts)}개")
        return TierResult(content, complete=True)


class RedditThreadFetcher(TieredSourceFetcher):
    label = "Reddit"

    def __init__(
        self,
        client: httpx.AsyncClient,
        top_n: int = 5,
        fetch_timeout: float = 10,
        usage: Optional[TierUsageTracker] = None,
    ):
        super().__init__(
            tiers=[RedditJsonTier(client, top_n=top_n, timeout=fetch_timeout)],
            default_timeout=fetch_timeout,
            usage=usage,
        )
