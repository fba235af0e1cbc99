import asyncio
import json

import httpx
import pytest

from tripgen.errors import EnrichmentLookupError
from tripgen.trips.places import GooglePlacesPhotoLookup, clean_place_name, photo_url, search_queries


def test_search_queries_are_ordered_and_deduplicated():
    assert search_queries("Belem Tower", "Lisbon") == [
        "Belem Tower",
        "Belem Tower Lisbon",
        "Belem Tower tourist attraction",
        "Belem Tower landmark",
        "Lisbon Belem Tower",
    ]
    assert search_queries("Castle (Sao Jorge)")[:2] == ["Castle (Sao Jorge)", "Castle"]


def test_clean_place_name_strips_punctuation():
    assert clean_place_name("  Café Nicola!  ") == "Café Nicola"
    assert clean_place_name("Rock & Roll (Bar)") == "Rock & Roll (Bar)"


def test_photo_url_for_new_and_legacy_tokens():
    new = photo_url("places/abc/photos/xyz", "KEY", max_width=400)
    assert new == "https://places.googleapis.com/v1/places/abc/photos/xyz/media?maxWidthPx=400&key=KEY"

    legacy = photo_url("AWU5eFg", "KEY", max_width=200)
    assert legacy.startswith("https://maps.googleapis.com/maps/api/place/photo?")
    assert "photo_reference=AWU5eFg" in legacy
    assert "maxwidth=200" in legacy


def run_lookup(handler, name="Belem Tower", location="Lisbon", api_key="KEY"):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await GooglePlacesPhotoLookup(api_key, client=http).lookup(name, location)

    return asyncio.run(scenario())


def test_lookup_tries_strategies_until_a_photo_is_found():
    queries = []

    def handler(request):
        body = json.loads(request.content)
        queries.append(body["textQuery"])
        assert request.headers["X-Goog-Api-Key"] == "KEY"
        assert "places.photos" in request.headers["X-Goog-FieldMask"]
        if len(queries) < 3:
            return httpx.Response(200, json={"places": [{"id": "p1", "photos": []}]})
        return httpx.Response(200, json={"places": [{"id": "p2", "photos": [{"name": "places/p2/photos/a"}]}]})

    assert run_lookup(handler) == "places/p2/photos/a"
    assert queries == ["Belem Tower", "Belem Tower Lisbon", "Belem Tower tourist attraction"]


def test_lookup_without_results_returns_none():
    assert run_lookup(lambda request: httpx.Response(200, json={})) is None


def test_lookup_stops_on_quota_errors():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, json={"error": {"message": "Quota exceeded"}})

    with pytest.raises(EnrichmentLookupError):
        run_lookup(handler)
    assert len(calls) == 1


def test_lookup_without_key_fails_fast():
    with pytest.raises(EnrichmentLookupError):
        run_lookup(lambda request: httpx.Response(200, json={}), api_key="")
