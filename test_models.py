import pytest
from pydantic import ValidationError

from conftest import lisbon_enhanced, lisbon_skeleton
from tripgen.errors import ItineraryValidationError
from tripgen.trips.models import (
    EnhancedPlace,
    ImageRefMap,
    Owner,
    TripDocument,
    TripPreferences,
    dump_itinerary,
    iter_places,
    parse_enhanced,
    parse_skeleton,
)


def test_skeleton_requires_every_requested_day(lisbon_preferences):
    data = lisbon_skeleton()
    del data["travelPlan"]["itinerary"]["day3"]
    with pytest.raises(ItineraryValidationError, match="day3"):
        parse_skeleton(data, lisbon_preferences)


def test_skeleton_drops_unrequested_days(lisbon_preferences):
    data = lisbon_skeleton()
    data["travelPlan"]["itinerary"]["day4"] = data["travelPlan"]["itinerary"]["day1"]
    skeleton = parse_skeleton(data, lisbon_preferences)
    assert list(skeleton.travel_plan.itinerary) == ["day1", "day2", "day3"]


def test_day_keys_are_normalized_and_ordered(lisbon_preferences):
    data = lisbon_skeleton()
    days = data["travelPlan"]["itinerary"]
    data["travelPlan"]["itinerary"] = {"Day 3": days["day3"], "day_1": days["day1"], "Day2": days["day2"]}
    skeleton = parse_skeleton(data, lisbon_preferences)
    assert list(skeleton.travel_plan.itinerary) == ["day1", "day2", "day3"]


def test_missing_travel_plan_wrapper_is_tolerated(lisbon_preferences):
    skeleton = parse_skeleton(lisbon_skeleton()["travelPlan"], lisbon_preferences)
    assert skeleton.travel_plan.location == "Lisbon, Portugal"


def test_day_without_places_is_rejected(lisbon_preferences):
    data = lisbon_skeleton()
    data["travelPlan"]["itinerary"]["day2"]["plan"] = []
    with pytest.raises(ItineraryValidationError):
        parse_skeleton(data, lisbon_preferences)


def test_name_fallback_and_number_coercion():
    place = EnhancedPlace.model_validate(
        {"name": "Belem Tower", "description": "Fortress on the Tagus.", "ticketPricing": 8, "geoCoordinates": [38.69, -9.21]}
    )
    assert place.place_name == "Belem Tower"
    assert place.ticket_pricing == "8"
    assert place.geo_coordinates.latitude == 38.69


def test_unusable_coordinates_become_none():
    place = EnhancedPlace.model_validate(
        {"placeName": "LX Factory", "description": "Creative hub.", "ticketPricing": "Free", "geoCoordinates": "n/a"}
    )
    assert place.geo_coordinates is None


def test_enhanced_place_requires_description():
    with pytest.raises(ValidationError):
        EnhancedPlace.model_validate({"placeName": "LX Factory", "ticketPricing": "Free"})


def test_enhanced_round_trip_keeps_camel_case():
    dumped = dump_itinerary(parse_enhanced(lisbon_enhanced()))
    place = dumped["travelPlan"]["itinerary"]["day1"]["plan"][0]
    assert place["placeName"] == "Castelo de Sao Jorge"
    assert place["ticketPricing"] == "EUR 10 (~$11)"
    assert place["geoCoordinates"] == {"latitude": 38.71, "longitude": -9.13}


def test_preferences_are_immutable_and_reject_unknown_fields(lisbon_preferences):
    with pytest.raises(ValidationError):
        lisbon_preferences.total_days = 4
    with pytest.raises(ValidationError):
        TripPreferences.model_validate({"destination": "Lisbon", "totalDays": 3, "surprise": True})
    assert lisbon_preferences.nights == 2


def test_preferences_bound_trip_length():
    with pytest.raises(ValidationError):
        TripPreferences(destination="Lisbon", total_days=0)


def test_document_store_round_trip(lisbon_preferences):
    document = TripDocument(
        id="t1",
        owner_id="user-1",
        user_email="traveler@example.com",
        preferences=lisbon_preferences,
        trip_plan=lisbon_skeleton(),
    )
    stored = document.to_store()
    assert stored["ownerId"] == "user-1"
    assert stored["isEnhanced"] is False
    assert stored["preferences"]["totalDays"] == 3
    assert TripDocument.from_store(stored) == document


def test_image_ref_map_counts_every_token():
    refs = ImageRefMap.model_validate(
        {"destination": "d", "hotels": {"0": "h"}, "places": {"day1": {"0": "a", "2": "b"}, "day2": {"1": "c"}}}
    )
    assert refs.count() == 5
    assert refs.place_token("day1", 2) == "b"
    assert refs.place_token("day3", 0) is None


def test_iter_places_follows_day_order():
    plan = lisbon_skeleton()["travelPlan"]
    plan["itinerary"] = {"day2": plan["itinerary"]["day2"], "day1": plan["itinerary"]["day1"]}
    visited = [(day_key, i) for day_key, i, _ in iter_places(plan)]
    assert visited[0] == ("day1", 0)
    assert visited[-1] == ("day2", 2)


def test_owner_email_is_validated():
    with pytest.raises(ValidationError):
        Owner(id="user-1", email="not-an-email")
