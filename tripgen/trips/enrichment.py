"""Concurrent photo-token enrichment for a generated itinerary."""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from tripgen.errors import StoreWriteError
from tripgen.trips.models import ImageRefMap, iter_places
from tripgen.trips.places import PhotoLookup
from tripgen.trips.store import DocumentStore

logger = logging.getLogger("trip-images")

Slot = Tuple[str, ...]


def lookup_targets(travel_plan: Dict[str, Any], destination: str) -> List[Tuple[Slot, str, Optional[str]]]:
    """List (slot, name, context) for the destination, every hotel and every place."""
    targets: List[Tuple[Slot, str, Optional[str]]] = []
    if destination:
        targets.append((("destination",), destination, None))

    for i, hotel in enumerate(travel_plan.get("hotels") or []):
        if not isinstance(hotel, dict):
            continue
        name = hotel.get("hotelName") or hotel.get("name")
        if name:
            targets.append((("hotels", str(i)), name, destination))

    for day_key, i, place in iter_places(travel_plan):
        name = place.get("placeName") or place.get("name")
        if name:
            targets.append((("places", day_key, str(i)), name, destination))

    return targets


class TripImageEnricher:
    """Looks up photo tokens for a whole itinerary with bounded concurrency."""

    def __init__(self, lookup: PhotoLookup, concurrency: int = 10):
        self.lookup = lookup
        self.concurrency = max(1, concurrency)

    async def _lookup_one(self, semaphore: asyncio.Semaphore, name: str, context: Optional[str]) -> Optional[str]:
        async with semaphore:
            try:
                return await self.lookup.lookup(name, context)
            except Exception as e:
                logger.warning(f"Image lookup failed for {name}: {e}")
                return None

    async def lookup_many(self, queries: List[Tuple[str, Optional[str]]]) -> List[Optional[str]]:
        """Run (name, context) lookups together; failures come back as None."""
        semaphore = asyncio.Semaphore(self.concurrency)
        return await asyncio.gather(*(self._lookup_one(semaphore, name, context) for name, context in queries))

    async def enrich(self, travel_plan: Dict[str, Any], destination: str) -> ImageRefMap:
        """
        Fetch photo tokens for the destination, hotels and places.

        Never raises; failed or empty lookups are simply absent from the map.

        Args:
            travel_plan: The travelPlan object of an itinerary
            destination: Destination name, also used as search context

        Returns:
            Image references keyed by the itinerary's own coordinates
        """
        targets = lookup_targets(travel_plan, destination)
        logger.info(f"Fetching {len(targets)} images ({self.concurrency} at a time)...")
        tokens = await self.lookup_many([(name, context) for _, name, context in targets])

        image_refs = ImageRefMap()
        for (slot, _, _), token in zip(targets, tokens):
            if not token:
                continue
            if slot[0] == "destination":
                image_refs.destination = token
            elif slot[0] == "hotels":
                image_refs.hotels[slot[1]] = token
            else:
                image_refs.places.setdefault(slot[1], {})[slot[2]] = token

        logger.info(
            f"Image fetching completed: destination={bool(image_refs.destination)}, "
            f"hotels={len(image_refs.hotels)}, "
            f"places={sum(len(day) for day in image_refs.places.values())}"
        )
        return image_refs

    async def enrich_document(
        self,
        store: DocumentStore,
        collection: str,
        trip_id: str,
        travel_plan: Dict[str, Any],
        destination: str,
    ) -> ImageRefMap:
        """
        Enrich and persist the result as a partial update of imageRefs.

        The found tokens are merged into the document's current imageRefs;
        slots another writer filled meanwhile (e.g. places added to the trip
        while lookups ran) are kept.
        """
        image_refs = await self.enrich(travel_plan, destination)
        try:
            current = await store.get(collection, trip_id)
            if current is None:
                raise StoreWriteError(f"Document {collection}/{trip_id} does not exist")
            merged = ImageRefMap.model_validate(current.get("imageRefs") or {}).fill_from(image_refs)
            await store.update(
                collection,
                trip_id,
                {"imageRefs": merged.model_dump(by_alias=True, mode="json"), "imagesReady": True},
            )
        except StoreWriteError as e:
            logger.error(f"Could not save images for trip {trip_id}: {e}")
        return image_refs
