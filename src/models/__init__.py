"""src.models
API 요청/응답 및 파이프라인에 사용되는 Pydantic 스키마 정의
"""
from src.models.source_reference import SourceReference
from src.models.raw_content import RawContent
from src.models.extraction_result import (
    DaySegment,
    DiscoveryIntent,
    ExtractedPlace,
    ExtractionResult,
    GroundedSuggestion,
)
from src.models.enriched_place import EnrichedPlace, Photo, PlaceDetails
from src.models.cache_entry import CacheEntry, CacheStats
from src.models.extraction_state import ExtractionState, PipelineStage
from src.models.place_extraction_request import PlaceExtractionRequest
from src.models.place_extraction_response import ProcessContentResponse
from src.models.extraction_context import ExtractionContext, MediaReference

__all__ = [
    "SourceReference",
    "RawContent",
    "DaySegment",
    "DiscoveryIntent",
    "ExtractedPlace",
    "ExtractionResult",
    "GroundedSuggestion",
    "EnrichedPlace",
    "Photo",
    "PlaceDetails",
    "CacheEntry",
    "CacheStats",
    "ExtractionState",
    "PipelineStage",
    "PlaceExtractionRequest",
    "ProcessContentResponse",
    "ExtractionContext",
    "MediaReference",
]
