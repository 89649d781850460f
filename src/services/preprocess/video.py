"""src.services.preprocess.video.py
vision 분석을 위해 미디어를 로컬 임시 파일로 다운로드합니다.

임시 파일은 분석 단계에 한정된 자원입니다. 분석 직전에 생성되고
성공, 파싱 실패, 네트워크 오류, 예외 등 모든 종료 경로에서 삭제됩니다.
"""
import logging
import mimetypes
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from src.core.exceptions import CustomError

logger = logging.getLogger(__name__)

# =============================================
# 설정 상수 (Constants)
# =============================================
DOWNLOAD_CHUNK_SIZE = 1024 * 256
MAX_MEDIA_BYTES = 200 * 1024 * 1024   # 200MB
DEFAULT_MIME_TYPE = "video/mp4"


@dataclass
class DownloadedMedia:
    path: str
    mime_type: str
    size: int


def _guess_mime_type(url: str, header_value: str | None) -> str:
    if header_value:
        mime = header_value.split(";")[0].strip().lower()
        if mime.startswith(("video/", "image/")):
            return mime
    guessed, _ = mimetypes.guess_type(url.split("?")[0])
    return guessed or DEFAULT_MIME_TYPE


@asynccontextmanager
async def downloaded_media(
    client: httpx.AsyncClient,
    media_url: str,
    timeout: float = 60,
) -> AsyncIterator[DownloadedMedia]:
    """
    미디어를 임시 파일로 다운로드하고 컨텍스트 종료 시 삭제합니다.

    Usage:
        async with downloaded_media(client, url) as media:
            await upload(media.path, media.mime_type)
    """
    fd, temp_path = tempfile.mkstemp(prefix="vision_", suffix=".media")
    os.close(fd)
    try:
        logger.info(f"[Media] 다운로드 시작: {media_url[:80]}")
        size = 0
        async with client.stream("GET", media_url, timeout=timeout, follow_redirects=True) as response:
            response.raise_for_status()
            mime_type = _guess_mime_type(media_url, response.headers.get("content-type"))
            with open(temp_path, "wb") as f:
                async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                    size += len(chunk)
                    if size > MAX_MEDIA_BYTES:
                        raise CustomError(f"미디어 크기 제한 초과: {MAX_MEDIA_BYTES} bytes")
                    f.write(chunk)

        if size == 0:
            raise CustomError("미디어를 다운로드하지 못했습니다 (0 bytes)")

        logger.info(f"[Media] 다운로드 완료 ({size} bytes, {mime_type})")
        yield DownloadedMedia(path=temp_path, mime_type=mime_type, size=size)
    finally:
        try:
            os.remove(temp_path)
            logger.info(f"[Media] 임시 파일 삭제: {temp_path}")
        except FileNotFoundError:
            pass
