"""src.services.preprocess.sns.py
- 플랫폼별 URL에서 콘텐츠 ID를 추출합니다. (YouTube, Instagram, TikTok, Reddit)
- yt-dlp로 메타데이터/자막/미디어 URL을 조회합니다. (다운로드 없음)
- 자막 포맷(VTT, timedtext XML)을 일반 텍스트로 변환합니다.
"""
import html
import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from yt_dlp import YoutubeDL

logger = logging.getLogger(__name__)

YOUTUBE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
INSTAGRAM_PATTERN = re.compile(r"/(p|reel|reels|tv)/([A-Za-z0-9_-]+)")
TIKTOK_PATTERN = re.compile(r"/@([^/]+)/video/(\d+)")
REDDIT_PATTERN = re.compile(r"/r/([^/]+)/comments/([A-Za-z0-9]+)")
REDDIT_SHORT_PATTERN = re.compile(r"^/(?:comments/)?([A-Za-z0-9]+)/?")


# =============================================
# URL 파싱
# =============================================
def extract_youtube_id(url: str) -> str:
    """
    유튜브 URL로부터 video_id를 추출합니다.
    /shorts/, /watch?v=, /embed/, /live/, /v/, youtu.be 패턴을 지원합니다.
    """
    # Load URL
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    path = parsed.path

    video_id = None
    if host == "youtu.be":
        video_id = path.strip("/").split("/")[0]
    elif path.startswith("/watch"):
        video_id = parse_qs(parsed.query).get("v", [None])[0]
    else:
        for prefix in ("/shorts/", "/embed/", "/live/", "/v/", "/e/"):
            if path.startswith(prefix):
                video_id = path[len(prefix):].split("/")[0]
                break

    if not video_id or not YOUTUBE_ID_PATTERN.match(video_id):
        raise ValueError(f"유효한 유튜브 URL이 아닙니다: {url}")
    return video_id


def is_youtube_short(url: str) -> bool:
    return urlparse(url).path.startswith("/shorts/")


def extract_instagram_id(url: str) -> tuple[str, str]:
    """
    인스타그램 URL로부터 (shortcode, 게시물 종류)를 추출합니다.
    /reel/, /reels/, /tv/, /p/ 네 가지 패턴을 모두 지원합니다. (reels는 reel로 정규화)
    """
    match = INSTAGRAM_PATTERN.search(urlparse(url).path)
    if not match:
        raise ValueError(f"유효한 인스타그램 URL이 아닙니다 (/reel/, /reels/, /tv/, /p/ 형식을 지원합니다): {url}")
    kind, shortcode = match.groups()
    return shortcode, "reel" if kind == "reels" else kind


def extract_tiktok_id(url: str) -> tuple[str, str]:
    """틱톡 URL로부터 (username, video_id)를 추출합니다."""
    match = TIKTOK_PATTERN.search(urlparse(url).path)
    if not match:
        raise ValueError(f"유효한 틱톡 URL이 아닙니다 (/@user/video/<id> 형식을 지원합니다): {url}")
    return match.group(1), match.group(2)


def extract_reddit_id(url: str) -> tuple[Optional[str], str]:
    """레딧 URL로부터 (subreddit, post_id)를 추출합니다. redd.it 단축 URL은 subreddit이 None입니다."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()

    match = REDDIT_PATTERN.search(parsed.path)
    if match:
        return match.group(1), match.group(2)

    if host == "redd.it" or parsed.path.startswith("/comments/"):
        short = REDDIT_SHORT_PATTERN.match(parsed.path)
        if short:
            return None, short.group(1)

    raise ValueError(f"유효한 레딧 스레드 URL이 아닙니다: {url}")


# =============================================
# yt-dlp 메타데이터
# =============================================
def extract_ytdlp_info(url: str, socket_timeout: float = 30) -> dict:
    """
    yt-dlp로 콘텐츠 정보를 조회합니다. 다운로드는 하지 않습니다.
    블로킹 함수이므로 asyncio.to_thread로 호출해야 합니다.
    """
    ydl_opts = {
        "format": "best[ext=mp4]/best",
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
        "skip_download": True,
        "socket_timeout": socket_timeout,
    }
    with YoutubeDL(ydl_opts) as ydl:
        info = ydl.extract_info(url, download=False)
    return ydl.sanitize_info(info) if info else {}


def pick_subtitle_url(info: dict, lang: str = "en") -> Optional[str]:
    """
    info의 수동 자막 → 자동 자막 순으로 지정 언어의 VTT 트랙 URL을 선택합니다.
    """
    for key in ("subtitles", "automatic_captions"):
        tracks = info.get(key) or {}
        for code in sorted(tracks, key=lambda c: (c != lang, c)):
            if not code.startswith(lang):
                continue
            for fmt in tracks[code] or []:
                if fmt.get("ext") == "vtt" and fmt.get("url"):
                    return fmt["url"]
    return None


def pick_media_url(info: dict) -> Optional[str]:
    """
    vision 분석에 사용할 직접 미디어 URL을 선택합니다.
    """
    # 직접 url (best) 우선
    if info.get("url") and info.get("ext") == "mp4":
        return info["url"]
    # formats 중 마지막(대개 최고 품질) 사용, mp4 선호
    formats = [f for f in info.get("formats") or [] if f.get("url")]
    if not formats:
        return info.get("url")
    mp4s = [f for f in formats if f.get("ext") == "mp4" and f.get("vcodec") != "none"]
    if mp4s:
        return mp4s[-1]["url"]
    return formats[-1]["url"]


# =============================================
# 자막 포맷 변환
# =============================================
_TAG_PATTERN = re.compile(r"<[^>]+>")
_SPACE_PATTERN = re.compile(r"\s+")


def parse_vtt_to_text(vtt: str) -> str:
    """
    WEBVTT 자막을 일반 텍스트로 변환합니다.
    자동 자막의 연속 중복 줄은 하나로 합칩니다.
    """
    lines = []
    in_note = False
    for raw_line in vtt.splitlines():
        line = raw_line.strip()
        if not line:
            in_note = False
            continue
        if in_note or line.startswith(("WEBVTT", "Kind:", "Language:", "STYLE", "REGION")):
            continue
        if line.startswith("NOTE"):
            in_note = True
            continue
        if "-->" in line or line.isdigit():
            continue
        text = html.unescape(_TAG_PATTERN.sub("", line)).strip()
        if text and (not lines or lines[-1] != text):
            lines.append(text)
    return " ".join(lines)


def parse_timedtext_xml(xml: str) -> str:
    """
    YouTube timedtext XML(<text>, srv3의 <p>)을 일반 텍스트로 변환합니다.
    """
    segments = re.findall(r"<(?:text|p)\b[^>]*>(.*?)</(?:text|p)>", xml, re.DOTALL)
    if not segments:
        segments = [xml]
    # 엔티티가 이중 인코딩되어 오는 경우가 있어 두 번 unescape 합니다.
    texts = [html.unescape(html.unescape(_TAG_PATTERN.sub("", s))) for s in segments]
    return _SPACE_PATTERN.sub(" ", " ".join(texts)).strip()
