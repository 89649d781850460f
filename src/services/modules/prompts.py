"""src.services.modules.prompts
장소 추출 LLM 프롬프트 모음
"""
from src.models import DiscoveryIntent, ExtractionContext

# =============================================
# 공통 추출 규칙
# =============================================
EXTRACTION_RULES = """
RULES FOR EXTRACTION:
1. Identify the "HERO" locations: the main destinations the creator actually spent time at or recommends.
2. OFFICIAL NAMES: "name" must be the official business or landmark name, never a dish, menu item or activity
   description. "Spicy tonkotsu ramen" is not a place; "Ichiran Shibuya" is.
3. ONE ENTRY PER BUSINESS: if the same business is mentioned several times, return it once.
4. ONE PIN PER COMPLEX: if several spots sit inside one complex (restaurants inside a mall, stalls inside a market,
   attractions inside a park), return ONE entry for the complex. Put every sub-spot, dish and tip into its
   "description" as bullet points ("• Spot: detail"). If you still list a sub-spot separately, set its
   "parentLocation" to the complex name.
5. RICH DESCRIPTIONS: "description" holds bullet points with prices, dishes, tips and highlights.
6. IGNORE TRANSIT POINTS: no airports, stations, pickup points or meeting spots unless they are a real destination.
7. CATEGORIES: "category" is one of food, accommodation, place, shopping, activity.
   Set "cuisineType" only for food places (e.g. ramen, sushi, cafe) and "placeType" for others (e.g. zoo, mall, temple).
8. VIDEO TYPE: "guide" for multi-day itineraries (fill "itinerary" with day, title and place names, and "day" on each
   place), "howto" for tips/packing/visa/how-to content with no places to pin, otherwise "places".
9. DESTINATION: always infer "destination" (city) and "destinationCountry" even when no places are found.
10. INTENT DETECTION: if no specific business is named but the content is clearly about one food or activity in one
   city, return "places": [] and fill "discoveryIntent" with type (CULINARY_GOAL, ACTIVITY_GOAL, SIGHTSEEING_GOAL,
   SHOPPING_GOAL), item, city, vibe, a search-ready "scoutQuery" (e.g. "best traditional sushi in Tokyo") and a
   "confidenceScore" between 0 and 1. Leave "discoveryIntent" null whenever "places" is non-empty.
11. Leave "groundedSuggestions" null.
"""


# =============================================
# Prompt 완성 함수
# =============================================
def _header(context: ExtractionContext) -> str:
    lines = [f"Platform: {context.platform} ({context.contentType})"]
    if context.title:
        lines.append(f"Title: {context.title}")
    if context.authorName:
        lines.append(f"Author: {context.authorName}")
    return "\n".join(lines)


def build_text_prompt(text: str, context: ExtractionContext) -> str:
    source_kind = "discussion thread" if context.contentType == "thread" else "travel content"
    return f"""Analyze this {source_kind} and extract only the MAJOR real-world places (Hero Places).
{EXTRACTION_RULES}
{_header(context)}

<Context>
{text}
</Context>

Respond only with JSON matching the schema."""


def build_vision_prompt(context: ExtractionContext) -> str:
    caption = f'\nAdditional context (caption): "{context.captionText}"' if context.captionText else ""
    return f"""Analyze this {context.platform} travel video and extract only the MAJOR real-world places (Hero Places).
{EXTRACTION_RULES}
12. READ ALL ON-SCREEN TEXT: signage, storefronts, logos, menus and burned-in captions count exactly as much as
   spoken words. Use them to recover official business names.

{_header(context)}{caption}

Respond only with JSON matching the schema."""


def build_suggestion_prompt(intent: DiscoveryIntent) -> str:
    vibe = f" with a {intent.vibe} vibe" if intent.vibe else ""
    return f"""A traveler wants: {intent.item} in {intent.city}{vibe}.
Search intent: "{intent.scoutQuery or intent.item}".

Suggest 3 to 5 well-known, currently operating venues from general knowledge.
For each give "name" (official name), "areaHint" (neighborhood) and a one-sentence "rationale".
Respond only with JSON matching the schema."""
