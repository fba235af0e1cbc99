"""Photo-token lookup against the Google Places API (New)."""
import logging
import re
from typing import List, Optional, Protocol
from urllib.parse import urlencode

import httpx

from tripgen.errors import EnrichmentLookupError

logger = logging.getLogger("places-lookup")

LEGACY_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"


class PhotoLookup(Protocol):
    async def lookup(self, place_name: str, location: Optional[str] = None) -> Optional[str]:
        ...


def clean_place_name(name: str) -> str:
    return re.sub(r"[^\w\s\-\(\)&]", "", name).strip()


def search_queries(name: str, location: Optional[str] = None) -> List[str]:
    """Query strategies in the order they are tried."""
    candidates = [
        name,
        re.sub(r"\s+\(.*?\)", "", name),  # Without parenthetical
        f"{name} {location}" if location else "",
        f"{name} tourist attraction",
        f"{name} landmark",
        f"{location} {name}" if location else "",
    ]
    queries = []
    for query in candidates:
        query = query.strip()
        if query and query not in queries:
            queries.append(query)
    return queries


def photo_url(token: str, api_key: str, max_width: int = 400,
              api_base: str = "https://places.googleapis.com/v1") -> str:
    """Form an image URL from a stored photo token."""
    if token.startswith("places/"):
        return f"{api_base.rstrip('/')}/{token}/media?" + urlencode({"maxWidthPx": max_width, "key": api_key})
    return f"{LEGACY_PHOTO_URL}?" + urlencode({"maxwidth": max_width, "photo_reference": token, "key": api_key})


class GooglePlacesPhotoLookup:
    """Finds a photo token for a place via Text Search."""

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://places.googleapis.com/v1",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def lookup(self, place_name: str, location: Optional[str] = None) -> Optional[str]:
        """
        Return the first photo token found for a place, or None.

        Raises:
            EnrichmentLookupError: If the API key is missing or the quota is exhausted
        """
        if not self.api_key:
            raise EnrichmentLookupError("Google Places API key not configured")

        cleaned = clean_place_name(place_name)
        if not cleaned:
            return None

        for query in search_queries(cleaned, location):
            try:
                resp = await self._client.post(
                    f"{self.api_base}/places:searchText",
                    headers={
                        "X-Goog-Api-Key": self.api_key,
                        "X-Goog-FieldMask": "places.id,places.displayName,places.photos",
                    },
                    json={"textQuery": query, "maxResultCount": 5, "languageCode": "en"},
                )
            except httpx.HTTPError as e:
                logger.warning(f"Network error for query {query!r}: {e}")
                continue

            if resp.status_code == 200:
                for place in resp.json().get("places", []):
                    photos = place.get("photos") or []
                    if photos and photos[0].get("name"):
                        logger.debug(f"Found photo reference for {place_name!r} via {query!r}")
                        return photos[0]["name"]
            elif resp.status_code in (403, 429):
                message = _error_message(resp)
                if resp.status_code == 429 or "quota" in message.lower():
                    raise EnrichmentLookupError(f"Places API quota exceeded: {message}")
                logger.error(f"Places API permission error: {message}")
            else:
                logger.warning(f"Places API error {resp.status_code} for query {query!r}")

        logger.info(f"No photo found after trying all search strategies for: {place_name}")
        return None

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json().get("error", {}).get("message", "") or resp.text
    except ValueError:
        return resp.text
