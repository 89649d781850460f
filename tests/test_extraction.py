import pytest

from src.core.exceptions import CustomError
from src.models import DaySegment, DiscoveryIntent, ExtractedPlace, ExtractionResult, RawContent, SourceReference
from src.services.extraction import (
    ExtractionEngine,
    build_text_context,
    collapse_hierarchy,
    dedupe_places,
    normalize_result,
)
from tests.stubs import StubAIService

VIDEO = SourceReference(
    platform="youtube",
    externalId="dQw4w9WgXcQ",
    url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    contentType="video",
)
REEL = SourceReference(
    platform="instagram",
    externalId="C1a2B3c4D5e",
    url="https://www.instagram.com/reel/C1a2B3c4D5e/",
    contentType="short",
)


class TestExtractedPlaceModel:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("Restaurant", "food"), ("hotel", "accommodation"), (" Shopping ", "shopping"), ("unknown", "place"), (None, "place")],
    )
    def test_category_normalization(self, raw, expected):
        assert ExtractedPlace(name="x", category=raw).category == expected

    def test_result_with_places_never_has_intent(self):
        result = ExtractionResult(
            places=[ExtractedPlace(name="Ichiran")],
            discoveryIntent=DiscoveryIntent(type="CULINARY_GOAL", item="Ramen", city="Tokyo"),
        )

        assert result.discoveryIntent is None


class TestDedupe:
    def test_same_business_is_merged(self):
        merged = dedupe_places([
            ExtractedPlace(name="Ichiran Shibuya", category="food", description="• 24시간", tags=["ramen"]),
            ExtractedPlace(name="#ichiran  shibuya", category="food", description="• 칸막이 좌석\n• 24시간", tags=["solo"], cuisineType="ramen"),
            ExtractedPlace(name="Afuri", category="food"),
        ])

        assert [p.name for p in merged] == ["Ichiran Shibuya", "Afuri"]
        assert merged[0].description == "• 24시간\n• 칸막이 좌석"
        assert merged[0].tags == ["ramen", "solo"]
        assert merged[0].cuisineType == "ramen"

    def test_blank_names_are_dropped(self):
        assert dedupe_places([ExtractedPlace(name="  "), ExtractedPlace(name="#")]) == []


class TestHierarchyCollapse:
    def test_children_collapse_into_new_parent(self):
        collapsed = collapse_hierarchy([
            ExtractedPlace(name="Restaurant A", category="food", description="• pasta", parentLocation="Mall X", locationHint="Singapore"),
            ExtractedPlace(name="Restaurant B", category="food", description="• dumplings", parentLocation="Mall X"),
            ExtractedPlace(name="Gardens by the Bay", category="place"),
        ])

        assert [p.name for p in collapsed] == ["Mall X", "Gardens by the Bay"]
        mall = collapsed[0]
        assert mall.category == "food"
        assert mall.description == "• Restaurant A: pasta\n• Restaurant B: dumplings"
        assert mall.locationHint == "Singapore"

    def test_mixed_children_make_generic_parent(self):
        [parent] = collapse_hierarchy([
            ExtractedPlace(name="Zara", category="shopping", parentLocation="Mall X"),
            ExtractedPlace(name="Din Tai Fung", category="food", parentLocation="Mall X"),
        ])

        assert parent.category == "place"
        assert parent.description == "• Zara\n• Din Tai Fung"

    def test_existing_parent_absorbs_children(self):
        collapsed = collapse_hierarchy([
            ExtractedPlace(name="Tsukiji Outer Market", category="place", description="• 새벽 방문 추천", tags=["market"]),
            ExtractedPlace(name="Sushi Zanmai", category="food", description="• 참치", parentLocation="Tsukiji Outer Market", tags=["sushi"]),
        ])

        assert len(collapsed) == 1
        assert collapsed[0].name == "Tsukiji Outer Market"
        assert collapsed[0].description == "• 새벽 방문 추천\n• Sushi Zanmai: 참치"
        assert collapsed[0].tags == ["market", "sushi"]

    def test_location_hint_naming_another_place(self):
        collapsed = collapse_hierarchy([
            ExtractedPlace(name="Marina Bay Sands", category="accommodation"),
            ExtractedPlace(name="SkyPark", category="activity", locationHint="marina bay sands"),
        ])

        assert [p.name for p in collapsed] == ["Marina Bay Sands"]
        assert "SkyPark" in collapsed[0].description

    def test_collapse_is_single_level(self):
        collapsed = collapse_hierarchy([
            ExtractedPlace(name="Food Hall", category="food", parentLocation="Mall X"),
            ExtractedPlace(name="Ramen Stall", category="food", parentLocation="Food Hall"),
        ])

        names = [p.name for p in collapsed]
        assert names.count("Food Hall") == 1
        assert "Ramen Stall" not in names

    def test_single_child_keeps_its_own_name(self):
        collapsed = collapse_hierarchy([
            ExtractedPlace(name="Golden Cheese Cafe", category="food", cuisineType="cafe", parentLocation="The Hyundai Seoul"),
            ExtractedPlace(name="Gyeongbokgung", category="place"),
        ])

        assert [p.name for p in collapsed] == ["Golden Cheese Cafe", "Gyeongbokgung"]
        assert collapsed[0].cuisineType == "cafe"
        assert collapsed[0].parentLocation == "The Hyundai Seoul"

    def test_single_child_survives_normalization(self):
        result = normalize_result(ExtractionResult(places=[
            ExtractedPlace(name="Golden Cheese Cafe", category="food", cuisineType="cafe", parentLocation="The Hyundai Seoul"),
        ]))

        assert [p.name for p in result.places] == ["Golden Cheese Cafe"]

    def test_no_hierarchy_is_untouched(self):
        original = [ExtractedPlace(name="A"), ExtractedPlace(name="B", locationHint="Tokyo")]

        assert collapse_hierarchy(original) == original


class TestNormalizeResult:
    def test_howto_has_no_places_or_intent(self):
        result = normalize_result(ExtractionResult(
            videoType="howto",
            places=[ExtractedPlace(name="JR Pass Office")],
        ))

        assert result.places == []
        assert result.discoveryIntent is None

    def test_scout_query_is_filled(self):
        result = normalize_result(ExtractionResult(
            discoveryIntent=DiscoveryIntent(type="CULINARY_GOAL", item="Sushi", city="Tokyo", vibe="traditional"),
        ))

        assert result.discoveryIntent.scoutQuery == "best traditional Sushi in Tokyo"

    def test_existing_scout_query_is_kept(self):
        result = normalize_result(ExtractionResult(
            discoveryIntent=DiscoveryIntent(type="ACTIVITY_GOAL", item="Surfing", city="Bali", scoutQuery="surf lessons canggu"),
        ))

        assert result.discoveryIntent.scoutQuery == "surf lessons canggu"

    def test_guide_days_come_from_itinerary(self):
        result = normalize_result(ExtractionResult(
            videoType="guide",
            durationDays=2,
            places=[ExtractedPlace(name="Fushimi Inari"), ExtractedPlace(name="Nishiki Market", day=1)],
            itinerary=[
                DaySegment(day=1, places=["Fushimi Inari"]),
                DaySegment(day=2, places=["Nishiki Market"]),
            ],
        ))

        assert [(p.name, p.day) for p in result.places] == [("Fushimi Inari", 1), ("Nishiki Market", 1)]


class TestTextContext:
    def test_sections_and_comments(self):
        context = build_text_context(RawContent(
            title="Best ramen in Tokyo?",
            descriptionText="Going next month",
            commentTexts=["Fuunji in Shinjuku", "Afuri Ebisu"],
        ))

        assert context.startswith("### 게시물 제목\nBest ramen in Tokyo?")
        assert "### 상위 댓글\nComment 1: Fuunji in Shinjuku\n\nComment 2: Afuri Ebisu" in context
        assert "자막" not in context


class TestExtractionEngine:
    @pytest.mark.asyncio
    async def test_text_path_sends_context_and_normalizes(self):
        ai = StubAIService(text_result=ExtractionResult(places=[
            ExtractedPlace(name="Ichiran Shibuya", category="restaurant"),
            ExtractedPlace(name="ichiran shibuya"),
        ]))
        raw = RawContent(title="Tokyo Ramen Tour", transcriptText="we went to ichiran shibuya")

        result = await ExtractionEngine(ai).extract(raw, VIDEO, "text")

        assert ai.calls == ["text"]
        assert "we went to ichiran shibuya" in ai.texts[0]
        assert ai.contexts[0].captionText is None
        assert [p.name for p in result.places] == ["Ichiran Shibuya"]
        assert result.places[0].category == "food"

    @pytest.mark.asyncio
    async def test_vision_path_passes_media_and_caption(self):
        ai = StubAIService()
        raw = RawContent(title="wow", captionText="sushi!! #tokyo", mediaUrl="https://cdn.example.com/reel.mp4")

        await ExtractionEngine(ai).extract(raw, REEL, "vision")

        assert ai.calls == ["vision"]
        assert ai.media[0].url == "https://cdn.example.com/reel.mp4"
        assert ai.media[0].platform == "instagram"
        assert ai.contexts[0].captionText == "sushi!! #tokyo"

    @pytest.mark.asyncio
    async def test_vision_without_media_fails(self):
        with pytest.raises(CustomError):
            await ExtractionEngine(StubAIService()).extract(RawContent(title="x"), REEL, "vision")
