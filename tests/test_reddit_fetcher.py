import httpx
import pytest
import respx

from src.models import SourceReference
from src.services.fetchers.reddit import RedditThreadFetcher, parse_reddit_listing

REF = SourceReference(
    platform="reddit",
    externalId="1abcde",
    url="https://www.reddit.com/r/JapanTravel/comments/1abcde/",
    contentType="thread",
)
THREAD_JSON_URL = "https://www.reddit.com/r/JapanTravel/comments/1abcde.json"


def comment(body: str, kind: str = "t1") -> dict:
    return {"kind": kind, "data": {"body": body}}


LISTING = [
    {
        "kind": "Listing",
        "data": {
            "children": [
                {
                    "kind": "t3",
                    "data": {
                        "title": "Best ramen in Tokyo?",
                        "selftext": "Going to Tokyo next month, where should I eat ramen?",
                        "author": "ramen_fan",
                        "thumbnail": "self",
                    },
                }
            ]
        },
    },
    {
        "kind": "Listing",
        "data": {
            "children": [
                comment("Fuunji in Shinjuku, the tsukemen is unreal."),
                comment("lol"),
                comment("[deleted]"),
                comment("Ichiran Shibuya if you want the solo booth experience."),
                comment("Afuri Ebisu for yuzu shio ramen, lighter broth."),
                {"kind": "more", "data": {"children": ["abc", "def"]}},
                comment("Nakiryu in Otsuka had a Michelin star for years."),
                comment("Menya Musashi Shinjuku for thick tonkotsu gyokai."),
                comment("Tsuta in Yoyogi-Uehara, get there before opening."),
            ]
        },
    },
]


class TestParseRedditListing:
    def test_keeps_top_n_substantive_comments(self):
        content = parse_reddit_listing(LISTING, top_n=5)

        assert content.title == "Best ramen in Tokyo?"
        assert content.descriptionText.startswith("Going to Tokyo")
        assert content.authorName == "ramen_fan"
        assert content.thumbnailUrl is None
        assert len(content.commentTexts) == 5
        assert content.commentTexts[0].startswith("Fuunji")
        assert "lol" not in content.commentTexts
        assert "[deleted]" not in content.commentTexts
        assert content.commentTexts[-1].startswith("Menya Musashi")

    def test_link_post_without_selftext(self):
        listing = [{"data": {"children": [{"data": {"title": "Photo", "selftext": "", "thumbnail": "https://b.thumbs.redditmedia.com/x.jpg"}}]}}]

        content = parse_reddit_listing(listing)

        assert content.descriptionText is None
        assert content.thumbnailUrl == "https://b.thumbs.redditmedia.com/x.jpg"
        assert content.commentTexts == []


class TestRedditThreadFetcher:
    @pytest.mark.asyncio
    async def test_fetches_public_json(self):
        with respx.mock:
            route = respx.get(THREAD_JSON_URL).mock(return_value=httpx.Response(200, json=LISTING))

            async with httpx.AsyncClient() as client:
                content = await RedditThreadFetcher(client, top_n=3).fetch(REF)

        request = route.calls.last.request
        assert request.url.params["raw_json"] == "1"
        assert "User-Agent" in request.headers
        assert content.tiersUsed == ["reddit_json"]
        assert len(content.commentTexts) == 3

    @pytest.mark.asyncio
    async def test_rate_limited_returns_fallback_title(self):
        with respx.mock:
            respx.get(THREAD_JSON_URL).mock(return_value=httpx.Response(429))

            async with httpx.AsyncClient() as client:
                content = await RedditThreadFetcher(client).fetch(REF)

        assert content.title == "Reddit thread - 1abcde"
        assert content.commentTexts == []
