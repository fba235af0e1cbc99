from conftest import all_place_names, lisbon_enhanced, lisbon_skeleton
from tripgen.trips.merge import carry_over_additions, merge_enhanced
from tripgen.trips.models import parse_enhanced


def test_every_skeleton_place_survives_in_order():
    skeleton = lisbon_skeleton()
    merged = merge_enhanced(skeleton, lisbon_enhanced(skeleton))
    assert all_place_names(merged["travelPlan"]) == all_place_names(skeleton["travelPlan"])
    parse_enhanced(merged)


def test_dropped_place_is_restored_with_fallback_details():
    skeleton = lisbon_skeleton()
    merged = merge_enhanced(skeleton, lisbon_enhanced(skeleton, drop={"Belem Tower"}))

    day2 = merged["travelPlan"]["itinerary"]["day2"]["plan"]
    assert [p["placeName"] for p in day2] == ["Jeronimos Monastery", "Belem Tower", "Pasteis de Belem"]
    restored = day2[1]
    assert restored["description"]
    assert restored["ticketPricing"] == "$-$$"
    parse_enhanced(merged)


def test_reworded_names_match_and_skeleton_name_wins():
    skeleton = lisbon_skeleton()
    enhanced = lisbon_enhanced(skeleton)
    enhanced["travelPlan"]["itinerary"]["day1"]["plan"][0]["placeName"] = "castelo de  SAO jorge"

    merged = merge_enhanced(skeleton, enhanced)

    first = merged["travelPlan"]["itinerary"]["day1"]["plan"][0]
    assert first["placeName"] == "Castelo de Sao Jorge"
    assert first["description"] == "Castelo de Sao Jorge is one of the highlights of Lisbon."


def test_places_only_the_detail_pass_names_are_left_out():
    skeleton = lisbon_skeleton()
    enhanced = lisbon_enhanced(skeleton)
    enhanced["travelPlan"]["itinerary"]["day3"]["plan"].append(
        {"placeName": "Feira da Ladra", "description": "Flea market.", "ticketPricing": "Free"}
    )
    merged = merge_enhanced(skeleton, enhanced)
    assert all_place_names(merged["travelPlan"]) == all_place_names(skeleton["travelPlan"])


def test_accented_rewording_matches_without_a_duplicate():
    skeleton = lisbon_skeleton()
    enhanced = lisbon_enhanced(skeleton)
    enhanced["travelPlan"]["itinerary"]["day2"]["plan"][1]["placeName"] = "Belém Tower"

    merged = merge_enhanced(skeleton, enhanced)

    day2 = merged["travelPlan"]["itinerary"]["day2"]["plan"]
    assert [p["placeName"] for p in day2] == ["Jeronimos Monastery", "Belem Tower", "Pasteis de Belem"]
    assert day2[1]["description"] == "Belem Tower is one of the highlights of Lisbon."


def test_place_returned_without_details_gets_fallbacks():
    skeleton = lisbon_skeleton()
    enhanced = lisbon_enhanced(skeleton)
    hotel = enhanced["travelPlan"]["hotels"][0]
    del hotel["description"]
    place = enhanced["travelPlan"]["itinerary"]["day2"]["plan"][0]
    del place["description"]
    place["ticketPricing"] = ""

    merged = merge_enhanced(skeleton, enhanced)
    parse_enhanced(merged)

    merged_place = merged["travelPlan"]["itinerary"]["day2"]["plan"][0]
    assert merged_place["description"].startswith("Jeronimos Monastery")
    assert merged_place["ticketPricing"] == "$-$$"
    assert merged_place["tip"] == "Arrive early."
    assert merged["travelPlan"]["hotels"][0]["description"].startswith("Hotel Avenida Palace")
    assert merged["travelPlan"]["itinerary"]["day2"]["plan"][1]["description"] == (
        "Belem Tower is one of the highlights of Lisbon."
    )


def test_additions_made_during_the_detail_pass_are_kept_in_place():
    skeleton = lisbon_skeleton()
    merged = merge_enhanced(skeleton, lisbon_enhanced(skeleton))
    current = lisbon_skeleton()
    park = {"placeName": "Jardim da Estrela", "description": "Leafy park.", "ticketPricing": "Free"}
    current["travelPlan"]["itinerary"]["day1"]["plan"].append(park)

    result = carry_over_additions(merged, skeleton, current)

    day1 = result["travelPlan"]["itinerary"]["day1"]["plan"]
    assert [p["placeName"] for p in day1][3:] == ["Jardim da Estrela"]
    assert day1[0]["description"] == "Castelo de Sao Jorge is one of the highlights of Lisbon."
    assert len(result["travelPlan"]["itinerary"]["day2"]["plan"]) == 3
    assert len(merged["travelPlan"]["itinerary"]["day1"]["plan"]) == 3


def test_detail_day_keys_are_normalized_and_extra_days_ignored():
    skeleton = lisbon_skeleton()
    enhanced = lisbon_enhanced(skeleton)
    days = enhanced["travelPlan"]["itinerary"]
    enhanced["travelPlan"]["itinerary"] = {
        "Day 1": days["day1"],
        "day2": days["day2"],
        "day3": days["day3"],
        "day4": days["day1"],
    }

    merged = merge_enhanced(skeleton, enhanced)

    assert list(merged["travelPlan"]["itinerary"]) == ["day1", "day2", "day3"]
    assert merged["travelPlan"]["itinerary"]["day1"]["plan"][0]["ticketPricing"] == "EUR 10 (~$11)"


def test_detail_without_wrapper_or_days_keeps_skeleton():
    skeleton = lisbon_skeleton()
    merged = merge_enhanced(skeleton, {"location": "Somewhere else"})
    assert merged["travelPlan"]["location"] == "Lisbon, Portugal"
    assert all_place_names(merged["travelPlan"]) == all_place_names(skeleton["travelPlan"])
    parse_enhanced(merged)
