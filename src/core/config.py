"""src.core.config.py
.env 파일에서 API키와 파이프라인 설정값을 할당합니다.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # API 키
    GOOGLE_API_KEY: str
    GOOGLE_MAPS_API_KEY: str
    AI_SERVER_API_KEY: str
    ENVIRONMENT: str = "dev"  # dev: 로컬, prod: 서버환경
    LOG_LEVEL: str = "INFO"

    # Residential proxy (watch page / 미디어 다운로드 전용)
    PROXY_HOST: Optional[str] = None
    PROXY_PORT: Optional[int] = None
    PROXY_USER: Optional[str] = None
    PROXY_PASS: Optional[str] = None

    # Gemini 모델
    GEMINI_TEXT_MODEL: str = "gemini-2.5-flash"
    GEMINI_VISION_MODEL: str = "gemini-2.5-flash"
    GEMINI_FALLBACK_MODEL: str = "gemini-2.0-flash"
    EXTRACTION_TEMPERATURE: float = 0.1

    # 캐시
    CACHE_DB_PATH: str = "content_cache.db"
    CACHE_TTL_DAYS: Optional[int] = None  # None: 만료 없음
    CACHE_CLEANUP_INTERVAL_HOURS: float = 24
    CACHE_RETENTION_DAYS: int = 90

    # 파이프라인
    TEXT_MIN_CHARS: int = 100
    RICH_DESCRIPTION_CHARS: int = 400
    PLACES_CONCURRENCY: int = 3
    REDDIT_TOP_COMMENTS: int = 5
    GROUNDED_SUGGESTIONS_ENABLED: bool = False

    # 타임아웃 (초)
    FETCH_TIMEOUT: float = 10
    OEMBED_TIMEOUT: float = 10
    YTDLP_TIMEOUT: float = 30
    EXTRACTION_TIMEOUT: float = 120
    PLACES_TIMEOUT: float = 10
    MEDIA_DOWNLOAD_TIMEOUT: float = 60
    VISION_FILE_POLL_SECONDS: float = 2

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def proxy_url(self) -> Optional[str]:
        if not self.PROXY_HOST or not self.PROXY_PORT:
            return None
        if self.PROXY_USER and self.PROXY_PASS:
            return f"http://{self.PROXY_USER}:{self.PROXY_PASS}@{self.PROXY_HOST}:{self.PROXY_PORT}"
        return f"http://{self.PROXY_HOST}:{self.PROXY_PORT}"

settings = Settings()
