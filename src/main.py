"""src.main
FastAPI 애플리케이션 엔트리포인트

외부 클라이언트(httpx, genai)와 파이프라인 구성요소는 lifespan에서 한 번 생성되어
app.state로 주입되고, 종료 시 정리됩니다.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from google import genai

from src.apis.place_router import router as place_router
from src.core.config import Settings, settings
from src.core.logger import setup_logging
from src.services.background_tasks import run_cache_maintenance
from src.services.cache import SqliteContentCache
from src.services.content_router import ContentRouter
from src.services.enrichment import PlaceEnrichmentEngine
from src.services.extraction import ExtractionEngine
from src.services.fetchers.instagram import InstagramPostFetcher
from src.services.fetchers.reddit import RedditThreadFetcher
from src.services.fetchers.short_video import ShortVideoFetcher
from src.services.fetchers.youtube import YouTubeVideoFetcher
from src.services.modules.llm import GeminiExtractionService
from src.services.modules.places import GooglePlacesProvider
from src.services.workflow import ContentWorkflow

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_workflow(
    config: Settings,
    client: httpx.AsyncClient,
    proxy_client: httpx.AsyncClient,
    genai_client: genai.Client,
    cache: SqliteContentCache,
) -> ContentWorkflow:
    # tier 사용량은 fetcher마다 따로 집계합니다 (tier 이름이 fetcher 간에 겹침)
    router = ContentRouter({
        "video": YouTubeVideoFetcher(
            client,
            proxy_client=proxy_client,
            min_chars=config.TEXT_MIN_CHARS,
            fetch_timeout=config.FETCH_TIMEOUT,
            ytdlp_timeout=config.YTDLP_TIMEOUT,
            oembed_timeout=config.OEMBED_TIMEOUT,
        ),
        "short": ShortVideoFetcher(
            client,
            ytdlp_timeout=config.YTDLP_TIMEOUT,
            oembed_timeout=config.OEMBED_TIMEOUT,
        ),
        "thread": RedditThreadFetcher(
            client,
            top_n=config.REDDIT_TOP_COMMENTS,
            fetch_timeout=config.FETCH_TIMEOUT,
        ),
        "post": InstagramPostFetcher(client, fetch_timeout=config.FETCH_TIMEOUT),
    })

    service = GeminiExtractionService(
        genai_client,
        media_client=proxy_client,
        text_model=config.GEMINI_TEXT_MODEL,
        vision_model=config.GEMINI_VISION_MODEL,
        fallback_model=config.GEMINI_FALLBACK_MODEL,
        temperature=config.EXTRACTION_TEMPERATURE,
        timeout=config.EXTRACTION_TIMEOUT,
        media_timeout=config.MEDIA_DOWNLOAD_TIMEOUT,
        poll_seconds=config.VISION_FILE_POLL_SECONDS,
    )
    enricher = PlaceEnrichmentEngine(
        GooglePlacesProvider(client, config.GOOGLE_MAPS_API_KEY, timeout=config.PLACES_TIMEOUT),
        concurrency=config.PLACES_CONCURRENCY,
        timeout=config.PLACES_TIMEOUT,
    )

    return ContentWorkflow(
        router=router,
        engine=ExtractionEngine(service),
        enricher=enricher,
        cache=cache,
        text_min_chars=config.TEXT_MIN_CHARS,
        rich_description_chars=config.RICH_DESCRIPTION_CHARS,
        cache_ttl_days=config.CACHE_TTL_DAYS,
        suggester=service.suggest_for_intent if config.GROUNDED_SUGGESTIONS_ENABLED else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT, follow_redirects=True)
    proxy_url = settings.proxy_url
    proxy_client = (
        httpx.AsyncClient(proxy=proxy_url, timeout=settings.FETCH_TIMEOUT, follow_redirects=True)
        if proxy_url
        else client
    )
    if proxy_url:
        logger.info("Residential proxy 사용: watch page / 미디어 다운로드")

    cache = SqliteContentCache(settings.CACHE_DB_PATH)
    await cache.init()
    app.state.cache = cache
    app.state.workflow = build_workflow(
        settings,
        client,
        proxy_client,
        genai.Client(api_key=settings.GOOGLE_API_KEY),
        cache,
    )

    maintenance = asyncio.create_task(
        run_cache_maintenance(cache, settings.CACHE_CLEANUP_INTERVAL_HOURS, settings.CACHE_RETENTION_DAYS)
    )
    logger.info(f"서버 시작 (ENVIRONMENT={settings.ENVIRONMENT})")
    try:
        yield
    finally:
        maintenance.cancel()
        try:
            await maintenance
        except asyncio.CancelledError:
            pass
        if proxy_client is not client:
            await proxy_client.aclose()
        await client.aclose()
        logger.info("서버 종료")


def create_app() -> FastAPI:
    app = FastAPI(title="Place Extraction AI Server", version="1.0.0", lifespan=lifespan)
    app.include_router(place_router)

    @app.get("/health", tags=["헬스 체크"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
