"""src.services.workflow
Pipeline Orchestrator

CHECK_CACHE → (hit) RETURN_CACHED
CHECK_CACHE → (miss) FETCH_SOURCE → SELECT_ANALYSIS_PATH → EXTRACT
            → {장소 0개 ? DISCOVERY_OR_FALLBACK : ENRICH} → WRITE_CACHE → RETURN

호출자에게 실패로 전달되는 오류는 InvalidSource와 ExtractionParseError뿐이며,
나머지(SourceUnavailable, EnrichmentDegraded, CacheWriteFailed)는 각 단계에서 로그를 남기고
best-effort 결과로 계속 진행합니다.
"""
import logging
import re
from typing import Awaitable, Callable, Optional

from src.core.exceptions import CustomError, ExtractionParseError
from src.models import (
    CacheEntry,
    DiscoveryIntent,
    EnrichedPlace,
    ExtractedPlace,
    ExtractionResult,
    ExtractionState,
    GroundedSuggestion,
    PipelineStage,
    ProcessContentResponse,
    RawContent,
    SourceReference,
)
from src.services.cache import ContentCache
from src.services.content_router import ContentRouter
from src.services.enrichment import PlaceEnrichmentEngine
from src.services.extraction import AnalysisPath, ExtractionEngine
from src.services.fetchers.base import fallback_title

logger = logging.getLogger(__name__)

Suggester = Callable[[DiscoveryIntent], Awaitable[list[GroundedSuggestion]]]

# =============================================
# 경로 선택 휴리스틱
# =============================================
MIN_KEYWORD_CAPTION_CHARS = 30
LOCATION_KEYWORDS = (
    "restaurant", "cafe", "bar", "hotel", "resort", "temple", "museum", "market", "shop", "store",
    "beach", "park", "street", "road", "visit", "went to", "at the", "located", "address", "find us",
    "place", "spot", "try", "must", "best", "recommend",
)

_EMOJI = re.compile(
    "[\U0001F000-\U0001FAFF\U00002600-\U000027BF\u200d\ufe0f]+",
    re.UNICODE,
)
_HASHTAG = re.compile(r"#[\w가-힣]+")
_MENTION = re.compile(r"@[\w.]+")
_SPACES = re.compile(r"\s+")


def clean_caption(text: Optional[str]) -> str:
    """이모지, 해시태그, 멘션을 제거하고 공백을 정리합니다."""
    if not text:
        return ""
    text = _EMOJI.sub(" ", text)
    text = _HASHTAG.sub(" ", text)
    text = _MENTION.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def has_useful_caption(text: Optional[str], min_chars: int = 100) -> bool:
    cleaned = clean_caption(text)
    if len(cleaned) > min_chars:
        return True
    lowered = cleaned.lower()
    return len(cleaned) >= MIN_KEYWORD_CAPTION_CHARS and any(k in lowered for k in LOCATION_KEYWORDS)


def select_analysis_path(
    ref: SourceReference,
    raw: RawContent,
    min_chars: int = 100,
    rich_description_chars: int = 400,
) -> AnalysisPath:
    """
    text 경로를 우선하고 vision은 품질 fallback으로만 사용합니다.
    - 숏폼: 미디어가 있으면 항상 vision (fetcher 규칙)
    - 자막/캡션이 최소 길이를 넘거나 설명이 충분히 길면 text
    - 그 외에는 미디어가 있으면 vision, 없으면 text
    """
    has_media = bool(raw.mediaUrl)
    if ref.contentType == "short" and has_media:
        return "vision"

    if raw.transcriptText and len(raw.transcriptText.strip()) > min_chars:
        return "text"
    if has_useful_caption(raw.captionText, min_chars):
        return "text"
    if raw.descriptionText and len(raw.descriptionText.strip()) > rich_description_chars:
        return "text"
    if ref.contentType == "thread" and (raw.descriptionText or raw.commentTexts):
        return "text"

    return "vision" if has_media else "text"


# =============================================
# 합성 장소
# =============================================
def build_tip_place(raw: RawContent, ref: SourceReference, result: ExtractionResult) -> ExtractedPlace:
    return ExtractedPlace(
        name=raw.title or fallback_title(ref),
        category="tip",
        description=result.summary,
        locationHint=result.location_hint,
        tags=["howto"],
    )


def build_fallback_place(raw: RawContent, ref: SourceReference, result: ExtractionResult) -> ExtractedPlace:
    return ExtractedPlace(
        name=raw.title or fallback_title(ref),
        category="place",
        description=result.summary,
        locationHint=result.location_hint,
        tags=["fallback"],
    )


class ContentWorkflow:
    """
    URL 1개를 처리하는 파이프라인

    모든 외부 협력자(fetcher, AI 서비스, 장소 API, 캐시)는 생성자로 주입됩니다.
    """

    def __init__(
        self,
        router: ContentRouter,
        engine: ExtractionEngine,
        enricher: PlaceEnrichmentEngine,
        cache: ContentCache,
        text_min_chars: int = 100,
        rich_description_chars: int = 400,
        cache_ttl_days: Optional[int] = None,
        suggester: Optional[Suggester] = None,
    ):
        self.router = router
        self.engine = engine
        self.enricher = enricher
        self.cache = cache
        self.text_min_chars = text_min_chars
        self.rich_description_chars = rich_description_chars
        self.cache_ttl_days = cache_ttl_days
        self.suggester = suggester

    @staticmethod
    def _transition(state: ExtractionState, stage: PipelineStage) -> None:
        state["stage"] = stage
        source = state.get("source")
        key = f"{source.platform}/{source.externalId}" if source else state.get("snsUrl")
        logger.info(f"[Pipeline] {key} → {stage.value}")

    # =============================================
    # 메인 파이프라인
    # =============================================
    async def process_content(self, url: str) -> ProcessContentResponse:
        state = ExtractionState(snsUrl=url)

        # InvalidSource는 네트워크 호출 이전에 그대로 전달
        ref = self.router.parse(url)
        state["source"] = ref

        self._transition(state, PipelineStage.CHECK_CACHE)
        cached = await self._read_cache(ref)
        if cached is not None:
            self._transition(state, PipelineStage.RETURN_CACHED)
            return self._response_from_cache(ref, cached)

        self._transition(state, PipelineStage.FETCH_SOURCE)
        raw = await self.router.fetcher_for(ref).fetch(ref)
        state["rawContent"] = raw
        logger.info(f"[Pipeline] fetch 완료: tiers={raw.tiersUsed}, title={raw.title}")

        self._transition(state, PipelineStage.SELECT_ANALYSIS_PATH)
        path = select_analysis_path(ref, raw, self.text_min_chars, self.rich_description_chars)
        logger.info(f"[Pipeline] 분석 경로: {path}")

        self._transition(state, PipelineStage.EXTRACT)
        result, path = await self._extract(ref, raw, path)
        state["analysisPath"] = path
        state["result"] = result

        enriched = await self._resolve_places(state, ref, raw, result)
        state["enrichedPlaces"] = enriched

        self._transition(state, PipelineStage.WRITE_CACHE)
        hit_count = await self._write_cache(ref, raw, state["result"], enriched)

        self._transition(state, PipelineStage.RETURN)
        final = state["result"]
        return ProcessContentResponse(
            **final.model_dump(exclude={"places"}),
            places=enriched,
            cached=False,
            hitCount=hit_count,
            platform=ref.platform,
            externalId=ref.externalId,
            url=ref.url,
            title=raw.title,
            authorName=raw.authorName,
            thumbnailUrl=raw.thumbnailUrl,
            analysisPath=path,
        )

    # =============================================
    # 단계별 처리
    # =============================================
    async def _read_cache(self, ref: SourceReference) -> Optional[CacheEntry]:
        try:
            return await self.cache.get(ref.platform, ref.externalId)
        except CustomError as e:
            logger.error(f"[Pipeline] 캐시 조회 실패, MISS로 처리: {e.message}")
            return None

    async def _extract(
        self,
        ref: SourceReference,
        raw: RawContent,
        path: AnalysisPath,
    ) -> tuple[ExtractionResult, AnalysisPath]:
        if path == "vision":
            try:
                return await self.engine.extract(raw, ref, "vision"), "vision"
            except ExtractionParseError:
                raise
            except Exception as e:
                # 미디어 다운로드/업로드 실패 등은 확보한 텍스트로 진행
                logger.warning(f"[Pipeline] vision 경로 실패, text 경로로 진행: {type(e).__name__}: {e}")
                return await self.engine.extract(raw, ref, "text"), "text"

        result = await self.engine.extract(raw, ref, "text")
        if result.places or result.videoType != "places" or not raw.mediaUrl:
            return result, "text"

        # text 경로 장소 0개 + 미디어 있음 → vision으로 재시도
        logger.info("[Pipeline] text 경로 장소 0개, vision 경로로 재분석")
        try:
            vision_result = await self.engine.extract(raw, ref, "vision")
        except Exception as e:
            logger.warning(f"[Pipeline] vision 재분석 실패, text 결과 유지: {type(e).__name__}: {e}")
            return result, "text"

        if vision_result.places or (vision_result.discoveryIntent and not result.discoveryIntent):
            return vision_result.model_copy(update={
                "destination": vision_result.destination or result.destination,
                "destinationCountry": vision_result.destinationCountry or result.destinationCountry,
                "summary": vision_result.summary or result.summary,
            }), "vision"
        return result, "text"

    async def _resolve_places(
        self,
        state: ExtractionState,
        ref: SourceReference,
        raw: RawContent,
        result: ExtractionResult,
    ) -> list[EnrichedPlace]:
        # howto: 합성 팁 1개, 보강 없음
        if result.videoType == "howto":
            self._transition(state, PipelineStage.DISCOVERY_OR_FALLBACK)
            tip = build_tip_place(raw, ref, result)
            state["result"] = result.model_copy(update={"places": [tip], "discoveryIntent": None})
            return [EnrichedPlace.from_extracted(tip)]

        if result.places:
            self._transition(state, PipelineStage.ENRICH)
            batch = await self.enricher.enrich_batch(result.places, result.location_hint)
            state["degradedCount"] = batch.degraded
            return batch.places

        self._transition(state, PipelineStage.DISCOVERY_OR_FALLBACK)
        intent = result.discoveryIntent
        if intent is not None and result.videoType != "guide":
            intent = await self._with_suggestions(intent)
            state["result"] = result.model_copy(update={"discoveryIntent": intent})
            logger.info(f"[Pipeline] discoveryIntent 반환: {intent.scoutQuery}")
            return []

        fallback = build_fallback_place(raw, ref, result)
        logger.info(f"[Pipeline] 장소/의도 없음, 합성 장소 생성: {fallback.name}")
        state["result"] = result.model_copy(update={"places": [fallback], "discoveryIntent": None})
        return [EnrichedPlace.from_extracted(fallback)]

    async def _with_suggestions(self, intent: DiscoveryIntent) -> DiscoveryIntent:
        if self.suggester is None:
            return intent
        suggestions = await self.suggester(intent)
        if not suggestions:
            return intent
        return intent.model_copy(update={"groundedSuggestions": suggestions})

    async def _write_cache(
        self,
        ref: SourceReference,
        raw: RawContent,
        result: ExtractionResult,
        enriched: list[EnrichedPlace],
    ) -> int:
        entry = CacheEntry(
            platform=ref.platform,
            externalId=ref.externalId,
            url=ref.url,
            title=raw.title,
            authorName=raw.authorName,
            thumbnailUrl=raw.thumbnailUrl,
            transcriptText=raw.transcriptText,
            summary=result.summary,
            videoType=result.videoType,
            destination=result.destination,
            destinationCountry=result.destinationCountry,
            places=enriched,
            discoveryIntent=result.discoveryIntent,
        )
        try:
            saved = await self.cache.set(entry, ttl_days=self.cache_ttl_days)
        except Exception as e:
            # 캐시 실패는 실행을 실패시키지 않습니다.
            logger.error(f"[Pipeline] 캐시 저장 실패 (결과는 그대로 반환): {e}", exc_info=True)
            return 0
        return saved.hitCount

    @staticmethod
    def _response_from_cache(ref: SourceReference, entry: CacheEntry) -> ProcessContentResponse:
        places = entry.places or []
        return ProcessContentResponse(
            summary=entry.summary or "",
            videoType=entry.videoType or "places",
            destination=entry.destination,
            destinationCountry=entry.destinationCountry,
            places=places,
            discoveryIntent=None if places else entry.discoveryIntent,
            cached=True,
            hitCount=entry.hitCount,
            platform=ref.platform,
            externalId=ref.externalId,
            url=entry.url or ref.url,
            title=entry.title,
            authorName=entry.authorName,
            thumbnailUrl=entry.thumbnailUrl,
            analysisPath="cache",
        )
