"""Add extra places of one category to an existing trip."""
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from tripgen.ai.gemini_client import ModelClient
from tripgen.ai.json_extractor import extract_json_array
from tripgen.ai.prompts import build_more_places_prompt
from tripgen.errors import MalformedResponseError, TripNotFoundError
from tripgen.trips.enrichment import TripImageEnricher
from tripgen.trips.models import (
    EnhancedPlace,
    ImageRefMap,
    TripDocument,
    iter_places,
    ordered_day_keys,
    utcnow,
)
from tripgen.trips.options import PLACE_FILTERS
from tripgen.trips.store import DocumentStore

logger = logging.getLogger("more-places")


def _normalize_place(raw: Any, filter_type: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError(f"expected an object, got {type(raw).__name__}")
    data = dict(raw)
    if not data.get("description") and data.get("placeDetails"):
        data["description"] = data.pop("placeDetails")
    data.setdefault("category", filter_type)
    if not data.get("ticketPricing"):
        data["ticketPricing"] = "Free"
    if not data.get("timeToTravel"):
        data["timeToTravel"] = "1-2 hours"
    place = EnhancedPlace.model_validate(data)
    return place.model_dump(by_alias=True, mode="json", exclude_none=True)


def parse_new_places(items: List[Any], filter_type: str) -> List[Dict[str, Any]]:
    """
    Validate model-suggested places, skipping the unusable ones.

    Raises:
        MalformedResponseError: If no suggestion survives validation
    """
    places = []
    for i, item in enumerate(items):
        try:
            places.append(_normalize_place(item, filter_type))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Skipping suggested place #{i}: {e}")
    if not places:
        raise MalformedResponseError("No places generated")
    return places


class MorePlacesGenerator:
    """Asks the model for a few more places and appends them across the trip's days."""

    def __init__(
        self,
        model_client: ModelClient,
        store: DocumentStore,
        enricher: TripImageEnricher,
        collection: str = "UserTrips",
    ):
        self.model_client = model_client
        self.store = store
        self.enricher = enricher
        self.collection = collection

    async def _load(self, trip_id: str) -> TripDocument:
        data = await self.store.get(self.collection, trip_id)
        if data is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        return TripDocument.from_store(data)

    async def generate_more_places(self, trip_id: str, filter_type: str) -> int:
        """
        Generate 3-5 places of a category and add them to the trip.

        New places are dealt round-robin over the days in order, appended at
        the end of each day's plan; their photo tokens land at the matching
        new indices. The itinerary and image refs are written together.

        Args:
            trip_id: Trip to extend
            filter_type: One of attractions, restaurants, nature, shopping, entertainment

        Returns:
            Number of places added

        Raises:
            ValueError: If filter_type is unknown
            TripNotFoundError: If the trip does not exist
            ModelExhaustedError: If no model answered
            MalformedResponseError: If the answer held no usable places
        """
        if filter_type not in PLACE_FILTERS:
            raise ValueError(f"Unknown place filter {filter_type!r}; expected one of {', '.join(PLACE_FILTERS)}")

        document = await self._load(trip_id)
        destination = document.preferences.destination
        existing = [place.get("placeName", "") for _, _, place in iter_places(document.travel_plan)]

        logger.info(f"Generating more {filter_type} for trip {trip_id}")
        prompt = build_more_places_prompt(document.preferences, filter_type, existing)
        text = await self.model_client.send(prompt)
        places = parse_new_places(extract_json_array(text), filter_type)

        tokens = await self.enricher.lookup_many([(place["placeName"], destination) for place in places])

        # Re-read: enrichment may have written imageRefs while we waited on the model
        document = await self._load(trip_id)
        trip_plan = dict(document.trip_plan)
        travel_plan = dict(trip_plan.get("travelPlan") or {})
        itinerary = {key: dict(day) for key, day in (travel_plan.get("itinerary") or {}).items()}
        days = ordered_day_keys(itinerary)
        if not days:
            raise MalformedResponseError(f"Trip {trip_id} has no days to add places to")

        image_refs: ImageRefMap = document.image_refs.model_copy(deep=True)
        for i, (place, token) in enumerate(zip(places, tokens)):
            day_key = days[i % len(days)]
            day = itinerary[day_key]
            day["plan"] = list(day.get("plan") or []) + [place]
            if token:
                image_refs.places.setdefault(day_key, {})[str(len(day["plan"]) - 1)] = token

        travel_plan["itinerary"] = itinerary
        trip_plan["travelPlan"] = travel_plan
        await self.store.update(
            self.collection,
            trip_id,
            {
                "tripPlan": trip_plan,
                "imageRefs": image_refs.model_dump(by_alias=True, mode="json"),
                "updatedAt": utcnow().isoformat(),
            },
        )
        logger.info(f"Added {len(places)} places to trip {trip_id}")
        return len(places)
