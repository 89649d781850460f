"""src.utils.common
API 공통 유틸리티
"""
import secrets

from fastapi import Header, HTTPException, status

from src.core.config import settings


async def verify_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> str:
    """
    X-API-Key 헤더를 검증합니다.

    Raises:
        HTTPException: 401 UNAUTHORIZED (API Key 누락 또는 불일치)
    """
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.AI_SERVER_API_KEY):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="유효하지 않은 API Key입니다")
    return x_api_key
