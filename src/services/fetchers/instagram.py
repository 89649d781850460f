"""src.services.fetchers.instagram
Instagram 게시물(/p/) fetcher

임베드 페이지(/embed/captioned/)에서 캡션을 추출합니다.
독립적인 추출 전략을 우선순위대로 시도하고, 길이 조건을 만족하는 첫 결과를 사용합니다.
1. script_payload: 인라인 스크립트의 캡션 JSON
2. meta_description: og:description / description 메타 태그
3. embed_dom: 임베드 DOM의 .Caption 요소

정적 HTML에서 캡션을 찾지 못하면(JS shell) Playwright로 렌더링한 HTML에 같은 전략을 다시 적용합니다.
"""
import json
import logging
import re
from typing import Awaitable, Callable, Optional

import httpx
from bs4 import BeautifulSoup

from src.models import RawContent, SourceReference
from src.services.fetchers.base import (
    BROWSER_USER_AGENT,
    FetchTier,
    TieredSourceFetcher,
    TierResult,
    TierUsageTracker,
)
from src.services.preprocess.playwright_scraper import parse_og_description, render_page_html

logger = logging.getLogger(__name__)

MIN_CAPTION_CHARS = 20

_EDGE_CAPTION = re.compile(
    r'"edge_media_to_caption"\s*:\s*\{\s*"edges"\s*:\s*\[\s*\{\s*"node"\s*:\s*\{\s*"text"\s*:\s*"((?:[^"\\]|\\.)*)"'
)
_CAPTION_TEXT = re.compile(r'"caption"\s*:\s*\{[^{}]*?"text"\s*:\s*"((?:[^"\\]|\\.)*)"')
_SPACE_PATTERN = re.compile(r"\s+")


def embed_url(ref: SourceReference) -> str:
    return f"https://www.instagram.com/p/{ref.externalId}/embed/captioned/"


def _qualified(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    collapsed = _SPACE_PATTERN.sub(" ", text).strip()
    return text.strip() if len(collapsed) >= MIN_CAPTION_CHARS else None


def _decode_json_string(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except json.JSONDecodeError:
        return raw


# =============================================
# 캡션 추출 전략
# =============================================
def caption_from_script_payload(html: str, soup: BeautifulSoup) -> Optional[str]:
    # 스크립트 안의 JSON이 문자열로 한 번 더 감싸진 경우(\") 도 처리
    for source in (html, html.replace('\\"', '"')):
        for pattern in (_EDGE_CAPTION, _CAPTION_TEXT):
            match = pattern.search(source)
            if match:
                caption = _qualified(_decode_json_string(match.group(1)))
                if caption:
                    return caption
    return None


def caption_from_meta_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    for attrs in ({"property": "og:description"}, {"name": "description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            caption = _qualified(parse_og_description(meta["content"]).caption)
            if caption:
                return caption
    return None


def caption_from_embed_dom(html: str, soup: BeautifulSoup) -> Optional[str]:
    node = soup.select_one(".Caption")
    if node is None:
        return None
    for noise in node.select(".CaptionUsername, .CaptionComments"):
        noise.decompose()
    return _qualified(node.get_text(" ", strip=True))


CAPTION_STRATEGIES: list[tuple[str, Callable[[str, BeautifulSoup], Optional[str]]]] = [
    ("script_payload", caption_from_script_payload),
    ("meta_description", caption_from_meta_description),
    ("embed_dom", caption_from_embed_dom),
]


def parse_embed_page(html: str) -> tuple[RawContent, Optional[str]]:
    """
    임베드 페이지 HTML을 RawContent로 변환합니다.

    Returns:
        (content, 캡션을 찾은 전략 이름 또는 None)
    """
    soup = BeautifulSoup(html, "html.parser")

    caption, strategy = None, None
    for name, strategy_fn in CAPTION_STRATEGIES:
        caption = strategy_fn(html, soup)
        if caption:
            strategy = name
            break

    author = None
    username = soup.select_one(".UsernameText")
    if username:
        author = username.get_text(strip=True) or None
    if not author:
        og_description = soup.find("meta", attrs={"property": "og:description"})
        if og_description and og_description.get("content"):
            author = parse_og_description(og_description["content"]).author

    image_url = None
    media_image = soup.select_one("img.EmbeddedMediaImage")
    if media_image and media_image.get("src"):
        image_url = media_image["src"]
    og_image = soup.find("meta", attrs={"property": "og:image"})
    thumbnail = (og_image.get("content") if og_image else None) or image_url

    title = caption.split("\n")[0].strip()[:120] if caption else None
    content = RawContent(
        title=title or None,
        captionText=caption,
        authorName=author,
        thumbnailUrl=thumbnail,
        mediaUrl=image_url or thumbnail,
    )
    return content, strategy


# =============================================
# Tiers
# =============================================
class EmbedPageTier(FetchTier):
    name = "embed_page"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10):
        self._client = client
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        response = await self._client.get(
            embed_url(ref),
            headers={"User-Agent": BROWSER_USER_AGENT},
            timeout=self.timeout,
            follow_redirects=True,
        )
        response.raise_for_status()
        content, strategy = parse_embed_page(response.text)
        if strategy:
            logger.info(f"[Instagram] 캡션 추출 성공: strategy={strategy} ({ref.externalId})")
        else:
            logger.info(f"[Instagram] 정적 HTML에서 캡션을 찾지 못했습니다 ({ref.externalId})")
        return TierResult(content, complete=strategy is not None)


class RenderedEmbedTier(FetchTier):
    name = "rendered_embed"

    def __init__(
        self,
        renderer: Callable[[str, float], Awaitable[str]] = render_page_html,
        timeout: float = 30,
    ):
        self._renderer = renderer
        self.timeout = timeout

    async def fetch(self, ref: SourceReference, current: RawContent) -> TierResult:
        html = await self._renderer(embed_url(ref), self.timeout)
        content, strategy = parse_embed_page(html)
        if strategy:
            logger.info(f"[Instagram] 렌더링 후 캡션 추출 성공: strategy={strategy} ({ref.externalId})")
        return TierResult(content, complete=strategy is not None)


class InstagramPostFetcher(TieredSourceFetcher):
    label = "Instagram"

    def __init__(
        self,
        client: httpx.AsyncClient,
        renderer: Callable[[str, float], Awaitable[str]] = render_page_html,
        fetch_timeout: float = 10,
        render_timeout: float = 30,
        usage: Optional[TierUsageTracker] = None,
    ):
        super().__init__(
            tiers=[
                EmbedPageTier(client, timeout=fetch_timeout),
                RenderedEmbedTier(renderer, timeout=render_timeout),
            ],
            default_timeout=fetch_timeout,
            usage=usage,
        )

    def is_sufficient(self, content: RawContent) -> bool:
        return bool(content.captionText)
