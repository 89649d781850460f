"""src.services.extraction
AI Extraction Engine

분석 경로(text / vision)는 Orchestrator가 선택합니다. 이 모듈은 선택된 경로로 AI 서비스를 호출하고,
경로와 무관하게 추출 규칙을 코드로 한 번 더 적용합니다.
- 상호명 정리 및 중복 업체 병합
- 복합 시설 계층 병합 (복합 시설 1곳 = 장소 1개, 하위 장소는 description 불릿으로)
- howto는 장소 0개, 가이드는 일정에서 일차 보충
- 장소가 있으면 discoveryIntent는 null
"""
import logging
import re
from collections import Counter
from typing import Literal, Optional, Protocol

from src.core.exceptions import CustomError
from src.models import (
    ExtractedPlace,
    ExtractionContext,
    ExtractionResult,
    MediaReference,
    RawContent,
    SourceReference,
)

logger = logging.getLogger(__name__)

AnalysisPath = Literal["text", "vision"]

MAX_CONTEXT_CHARS = 30000
BULLET = "•"

_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)
_SPACES = re.compile(r"\s+")


class AIExtractionService(Protocol):
    async def extract_text(self, text: str, context: ExtractionContext) -> ExtractionResult: ...

    async def extract_vision(self, media: MediaReference, context: ExtractionContext) -> ExtractionResult: ...


# =============================================
# 컨텍스트 구성
# =============================================
def build_text_context(raw: RawContent) -> str:
    sections = [
        ("게시물 제목", raw.title),
        ("게시물 설명", raw.descriptionText),
        ("게시물 자막 텍스트", raw.transcriptText),
        ("게시물 본문 텍스트", raw.captionText),
    ]
    if raw.commentTexts:
        comments = "\n\n".join(f"Comment {i}: {c}" for i, c in enumerate(raw.commentTexts, start=1))
        sections.append(("상위 댓글", comments))

    context = "\n\n".join(f"### {label}\n{text.strip()}" for label, text in sections if text and text.strip())
    return context[:MAX_CONTEXT_CHARS]


def build_extraction_context(raw: RawContent, ref: SourceReference, include_caption: bool = False) -> ExtractionContext:
    caption = None
    if include_caption:
        caption = raw.captionText or raw.descriptionText
        caption = caption[:2000] if caption else None
    return ExtractionContext(
        platform=ref.platform,
        contentType=ref.contentType,
        title=raw.title,
        authorName=raw.authorName,
        captionText=caption,
    )


# =============================================
# 추출 규칙
# =============================================
def name_key(name: Optional[str]) -> str:
    """대소문자/공백/구두점 무시 비교 키"""
    return _NON_WORD.sub("", (name or "").lower())


def clean_name(name: str) -> str:
    return _SPACES.sub(" ", name.strip().lstrip("#@").strip())


def _description_lines(description: str) -> list[str]:
    return [line.strip() for line in description.splitlines() if line.strip()]


def _merge_descriptions(base: str, extra: str) -> str:
    lines = _description_lines(base)
    seen = {name_key(line) for line in lines}
    for line in _description_lines(extra):
        if name_key(line) not in seen:
            lines.append(line)
            seen.add(name_key(line))
    return "\n".join(lines)


def _merge_tags(*tag_lists: list[str]) -> list[str]:
    merged = []
    for tags in tag_lists:
        for tag in tags:
            if tag and tag not in merged:
                merged.append(tag)
    return merged


def _fill_missing(base: ExtractedPlace, other: ExtractedPlace) -> dict:
    updates = {}
    for field in ("locationHint", "parentLocation", "cuisineType", "placeType", "day"):
        if getattr(base, field) is None and getattr(other, field) is not None:
            updates[field] = getattr(other, field)
    return updates


def dedupe_places(places: list[ExtractedPlace]) -> list[ExtractedPlace]:
    merged: dict[str, ExtractedPlace] = {}
    for place in places:
        name = clean_name(place.name)
        key = name_key(name)
        if not key:
            continue
        if key not in merged:
            merged[key] = place.model_copy(update={"name": name})
            continue
        existing = merged[key]
        logger.info(f"[Extraction] 중복 업체 병합: {name}")
        updates = _fill_missing(existing, place)
        updates["description"] = _merge_descriptions(existing.description, place.description)
        updates["tags"] = _merge_tags(existing.tags, place.tags)
        merged[key] = existing.model_copy(update=updates)
    return list(merged.values())


def _child_bullet(child: ExtractedPlace) -> str:
    detail = "; ".join(line.lstrip(f"{BULLET}-* ").strip() for line in _description_lines(child.description))
    return f"{BULLET} {child.name}: {detail}" if detail else f"{BULLET} {child.name}"


def _parent_of(place: ExtractedPlace, names_by_key: dict[str, str]) -> Optional[str]:
    own_key = name_key(place.name)
    if place.parentLocation and name_key(place.parentLocation) not in ("", own_key):
        return clean_name(place.parentLocation)
    # locationHint가 다른 추출 장소명과 같으면 그 장소 안에 있는 것으로 봅니다.
    hint_key = name_key(place.locationHint)
    if hint_key and hint_key != own_key and hint_key in names_by_key:
        return names_by_key[hint_key]
    return None


def collapse_hierarchy(places: list[ExtractedPlace]) -> list[ExtractedPlace]:
    """
    같은 복합 시설 안의 하위 장소 여러 개를 복합 시설 1개로 병합합니다.
    단일 하위 장소는 자기 이름을 유지하고, 복합 시설 자체가 추출된 경우에만 그 안으로 흡수됩니다.
    하위 장소는 "• 이름: 설명" 불릿으로 복합 시설 description에 들어갑니다.
    병합은 한 단계만 적용되며, 복합 시설로 쓰인 장소는 다른 시설의 하위로 병합되지 않습니다.
    """
    names_by_key = {name_key(p.name): p.name for p in places}
    parents = [_parent_of(p, names_by_key) for p in places]
    parent_keys = {name_key(parent) for parent in parents if parent}
    parents = [None if name_key(p.name) in parent_keys else parent for p, parent in zip(places, parents)]

    parent_names: dict[str, str] = {}
    children: dict[str, list[ExtractedPlace]] = {}
    for place, parent in zip(places, parents):
        if parent:
            key = name_key(parent)
            parent_names.setdefault(key, names_by_key.get(key, parent))
            children.setdefault(key, []).append(place)

    # 하위 장소가 하나뿐이고 상위 시설이 추출되지 않았다면 parentLocation은 메타데이터로만 둡니다.
    children = {key: group for key, group in children.items() if len(group) >= 2 or key in names_by_key}
    if not children:
        return places

    anchors = {name_key(p.name): p for p in places if name_key(p.name) in children}
    result: list[ExtractedPlace] = []
    emitted: set[str] = set()

    for place, parent in zip(places, parents):
        key = name_key(parent) if parent else name_key(place.name)
        if key not in children:
            result.append(place)
            continue
        if key in emitted:
            continue
        emitted.add(key)

        group = children[key]
        anchor = anchors.get(key)
        bullets = "\n".join(_child_bullet(child) for child in group)
        logger.info(f"[Extraction] 계층 병합: {parent_names[key]} ← {[child.name for child in group]}")

        if anchor is not None:
            merged = anchor.model_copy(update={
                "description": _merge_descriptions(anchor.description, bullets),
                "tags": _merge_tags(anchor.tags, *(c.tags for c in group)),
                "day": anchor.day if anchor.day is not None else group[0].day,
            })
        else:
            categories = Counter(child.category for child in group)
            category, count = categories.most_common(1)[0]
            merged = ExtractedPlace(
                name=parent_names[key],
                category=category if count == len(group) else "place",
                description=bullets,
                locationHint=next(
                    (c.locationHint for c in group if c.locationHint and name_key(c.locationHint) != key),
                    None,
                ),
                tags=_merge_tags(*(c.tags for c in group)),
                day=next((c.day for c in group if c.day is not None), None),
            )
        result.append(merged)

    return result


def apply_itinerary_days(result: ExtractionResult, places: list[ExtractedPlace]) -> list[ExtractedPlace]:
    if not result.itinerary:
        return places
    day_by_key = {}
    for segment in result.itinerary:
        for name in segment.places:
            day_by_key.setdefault(name_key(name), segment.day)
    return [
        p if p.day is not None or name_key(p.name) not in day_by_key
        else p.model_copy(update={"day": day_by_key[name_key(p.name)]})
        for p in places
    ]


def normalize_result(result: ExtractionResult) -> ExtractionResult:
    """경로와 무관하게 추출 규칙을 적용한 새 결과를 반환합니다."""
    if result.videoType == "howto":
        return result.model_copy(update={"places": [], "discoveryIntent": None})

    places = collapse_hierarchy(dedupe_places(result.places))
    if result.videoType == "guide":
        places = apply_itinerary_days(result, places)

    intent = result.discoveryIntent
    if places:
        intent = None
    elif intent is not None and not intent.scoutQuery:
        vibe = f"{intent.vibe} " if intent.vibe else ""
        intent = intent.model_copy(update={"scoutQuery": f"best {vibe}{intent.item} in {intent.city}"})

    return result.model_copy(update={"places": places, "discoveryIntent": intent})


# =============================================
# Engine
# =============================================
class ExtractionEngine:
    def __init__(self, service: AIExtractionService):
        self.service = service

    async def extract(self, raw: RawContent, ref: SourceReference, path: AnalysisPath) -> ExtractionResult:
        if path == "vision":
            if not raw.mediaUrl:
                raise CustomError(f"vision 분석에 사용할 미디어가 없습니다: {ref.platform}/{ref.externalId}")
            context = build_extraction_context(raw, ref, include_caption=True)
            media = MediaReference(url=raw.mediaUrl, platform=ref.platform)
            result = await self.service.extract_vision(media, context)
        else:
            context = build_extraction_context(raw, ref)
            result = await self.service.extract_text(build_text_context(raw), context)

        normalized = normalize_result(result)
        logger.info(
            f"[Extraction] {path} 경로 완료: videoType={normalized.videoType}, "
            f"places={len(normalized.places)}, intent={'Y' if normalized.discoveryIntent else 'N'}"
        )
        return normalized
