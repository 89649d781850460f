"""src.models.extraction_state
장소 추출 파이프라인 1회 실행의 상태 스키마
"""
from enum import Enum
from typing import List, Optional, TypedDict

from src.models.enriched_place import EnrichedPlace
from src.models.extraction_result import ExtractionResult
from src.models.raw_content import RawContent
from src.models.source_reference import SourceReference


class PipelineStage(str, Enum):
    CHECK_CACHE = "CHECK_CACHE"
    RETURN_CACHED = "RETURN_CACHED"
    FETCH_SOURCE = "FETCH_SOURCE"
    SELECT_ANALYSIS_PATH = "SELECT_ANALYSIS_PATH"
    EXTRACT = "EXTRACT"
    DISCOVERY_OR_FALLBACK = "DISCOVERY_OR_FALLBACK"
    ENRICH = "ENRICH"
    WRITE_CACHE = "WRITE_CACHE"
    RETURN = "RETURN"


class ExtractionState(TypedDict, total=False):
    """
    장소 추출 플로우 스키마

    total=False로 설정하여 모든 필드를 선택적으로 만듭니다.
    파이프라인 진행에 따라 점진적으로 필드가 채워집니다.

    Snippet
    {
        "snsUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "stage": PipelineStage.ENRICH,
        "source": SourceReference(platform="youtube", externalId="dQw4w9WgXcQ", ...),
        "rawContent": RawContent(title="Tokyo ramen tour", transcriptText="..."),
        "analysisPath": "text",
        "result": ExtractionResult(videoType="places", places=[...]),
        "enrichedPlaces": [EnrichedPlace(...)],
        "degradedCount": 0
    }
    """
    snsUrl: str  # 원본 URL
    stage: PipelineStage  # 현재 단계
    source: SourceReference  # 플랫폼 + 외부 ID
    rawContent: RawContent  # fetcher 결과
    analysisPath: str  # "text" | "vision" | "cache"
    result: ExtractionResult  # AI 추출 결과
    enrichedPlaces: List[EnrichedPlace]  # 보강 결과
    degradedCount: int  # 보강 실패 장소 수
    hitCount: Optional[int]  # 캐시 히트 수
