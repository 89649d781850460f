"""src.models.cache_entry
캐시 행 스키마. (platform, externalId)당 1행
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.models.enriched_place import EnrichedPlace
from src.models.extraction_result import DiscoveryIntent
from src.models.source_reference import Platform


class CacheEntry(BaseModel):
    platform: Platform
    externalId: str
    url: str
    title: Optional[str] = None
    authorName: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    transcriptText: Optional[str] = None
    summary: Optional[str] = None
    videoType: Optional[str] = None
    destination: Optional[str] = None
    destinationCountry: Optional[str] = None
    places: Optional[list[EnrichedPlace]] = Field(default=None, description="None이면 기존 값 유지 (merge)")
    discoveryIntent: Optional[DiscoveryIntent] = None
    createdAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    hitCount: int = 0
    lastHitAt: Optional[datetime] = None


class CacheStats(BaseModel):
    totalCached: int = 0
    totalHits: int = 0
