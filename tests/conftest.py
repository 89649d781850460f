"""공통 pytest fixture

애플리케이션 모듈 import 전에 필수 환경 변수를 설정해야 Settings()가 검증 오류 없이 생성됩니다.
"""
import os

os.environ.setdefault("GOOGLE_API_KEY", "test-google-api-key")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-api-key")
os.environ.setdefault("AI_SERVER_API_KEY", "test-ai-server-key")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from src.services.cache import SqliteContentCache  # noqa: E402
from src.services.content_router import ContentRouter  # noqa: E402
from src.services.enrichment import PlaceEnrichmentEngine  # noqa: E402
from src.services.extraction import ExtractionEngine  # noqa: E402
from src.services.workflow import ContentWorkflow  # noqa: E402
from tests.stubs import FakeClock, StubFetcher, StubPlacesProvider  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache(tmp_path, clock) -> SqliteContentCache:
    return SqliteContentCache(tmp_path / "cache.db", clock=clock)


@pytest.fixture
def make_workflow(cache):
    """
    StubFetcher + 주입된 AI 서비스/장소 API로 ContentWorkflow를 생성합니다.

    Returns:
        (workflow, fetcher, provider)
    """

    def _make(content, ai_service, provider=None, workflow_cache=None, **kwargs):
        fetcher = StubFetcher(content)
        provider = provider or StubPlacesProvider()
        router = ContentRouter({"video": fetcher, "short": fetcher, "thread": fetcher, "post": fetcher})
        workflow = ContentWorkflow(
            router=router,
            engine=ExtractionEngine(ai_service),
            enricher=PlaceEnrichmentEngine(provider, concurrency=3, timeout=1),
            cache=workflow_cache or cache,
            **kwargs,
        )
        return workflow, fetcher, provider

    return _make
