"""src.services.preprocess.playwright_scraper
Instagram 임베드 페이지 렌더링(Playwright)과 og:description 파싱
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import async_playwright

from src.services.fetchers.base import BROWSER_USER_AGENT

logger = logging.getLogger(__name__)

_LIKES = re.compile(r"[\d,]+\s*likes?")
_AUTHOR = re.compile(r"-\s*([\w.]+)\s+on\s+")
_CAPTION = re.compile(r":\s*[\"']?(.+)", re.DOTALL)


@dataclass
class OgDescription:
    """
    og:description 파싱 결과

    예: '7,434 likes, 63 comments - jamsilism on September 24, 2025: "캡션..."'
    """
    caption: Optional[str] = None
    author: Optional[str] = None


def parse_og_description(description: Optional[str]) -> OgDescription:
    if not description:
        return OgDescription()

    author = _AUTHOR.search(description)
    has_counts = _LIKES.search(description) is not None

    # "N likes ... - author on date:" 접두어가 있을 때만 본문을 잘라냄
    caption = description
    if author or has_counts:
        match = _CAPTION.search(description)
        if match:
            caption = match.group(1).rstrip("\"'")

    return OgDescription(
        caption=caption.strip() or None,
        author=author.group(1) if author else None,
    )


async def render_page_html(url: str, timeout: float = 30) -> str:
    """
    headless Chromium으로 JS가 그리는 페이지를 렌더링하고 최종 DOM HTML을 반환합니다.
    """
    logger.info(f"[Playwright] 렌더링 시작: {url}")

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True)
        try:
            page = await (
                await browser.new_context(user_agent=BROWSER_USER_AGENT, viewport={"width": 1280, "height": 1600})
            ).new_page()
            response = await page.goto(url, wait_until="networkidle", timeout=int(timeout * 1000))
            if response and response.status >= 400:
                raise RuntimeError(f"임베드 페이지 응답 오류: {response.status}")

            html = await page.content()
            logger.info(f"[Playwright] 렌더링 완료: {len(html)}자")
            return html
        finally:
            await browser.close()
