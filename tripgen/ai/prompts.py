"""Prompt templates for skeleton, detail and more-places generation.

Templates are filled with ``str.format``; a missing value raises ``KeyError``.
Literal JSON braces are doubled.
"""
import json
import textwrap

from tripgen.trips.models import TripPreferences
from tripgen.trips.options import (
    COST_PREFERENCE_GUIDANCE,
    PLACE_FILTERS,
    activity_titles,
    traveler_party,
)

SKELETON_PROMPT = textwrap.dedent(
    """\
    Create a FAST itinerary skeleton for Location: {location}, for {total_days} Days and {total_nights} Nights
    for {traveler} with a {budget} budget ({daily_budget} USD per person per day).

    **Activity Preferences**: {activity_preferences}
    **Activity Cost Preference**: {cost_preference} ({cost_guidance})
    **Start Date**: {start_date}

    IMPORTANT INSTRUCTIONS:
    1. Provide REAL places that exist in {location}
    2. Only give place names, time slots, a category tag and an estimated cost band
    3. NO descriptions, NO coordinates, NO image URLs - a second pass adds those
    4. Produce exactly {total_days} days keyed "day1" to "day{total_days}", 3-5 places per day
    5. Suggest 2-3 hotels that fit the {budget} budget
    6. **CRITICAL**: Return ONLY valid, complete JSON - NO markdown, NO explanations

    JSON Structure Required:
    {{
      "travelPlan": {{
        "location": "{location}",
        "duration": "{total_days} Days & {total_nights} Nights",
        "travelers": "{traveler}",
        "budget": "{budget}",
        "flight": {{
          "details": "Flight information",
          "price": "Estimated price",
          "bookingUrl": "https://www.google.com/flights"
        }},
        "hotels": [
          {{"hotelName": "Hotel Name", "address": "Hotel Address", "price": "Price per night", "rating": 4.5}}
        ],
        "itinerary": {{
          "day1": {{
            "theme": "Short theme for the day",
            "bestTime": "Morning/Afternoon/Evening",
            "plan": [
              {{"placeName": "Place Name", "time": "9:00 AM - 11:00 AM", "category": "culture", "estimatedCost": "$-$$"}}
            ]
          }}
        }}
      }}
    }}
    """
)

DETAIL_PROMPT = textwrap.dedent(
    """\
    You are enhancing an existing travel itinerary for {location} ({total_days} Days & {total_nights} Nights,
    {traveler}, {budget} budget, {daily_budget} USD per person per day).

    **Activity Preferences**: {activity_preferences}
    **Activity Cost Preference**: {cost_preference} ({cost_guidance})

    Here is the itinerary skeleton the traveler is already looking at:
    {skeleton_json}

    IMPORTANT INSTRUCTIONS:
    1. ENHANCE, do not regenerate: keep EVERY day key and EVERY placeName and hotelName exactly as given
    2. Keep the order of places within each day
    3. For every place add:
       - "description": 2-3 sentences about the place and what to do there
       - "ticketPricing": ticket price in local currency with USD equivalent, or "Free"
       - "geoCoordinates": {{"latitude": 0.0, "longitude": 0.0}}
       - "bestTimeToVisit": best time of day to visit
       - "timeToTravel": travel time from the previous place
       - "tip": one short practical tip
    4. For every hotel add "description" and "geoCoordinates"
    5. ALL pricing must fit within {daily_budget} USD per person per day
    6. **CRITICAL**: Keep descriptions concise to fit token limits
    7. **CRITICAL**: Return ONLY the complete enhanced JSON with the same structure - NO markdown, NO explanations
    """
)

MORE_PLACES_PROMPT = textwrap.dedent(
    """\
    Generate 3-5 additional {activity_type} recommendations for {location}.

    IMPORTANT: Return ONLY a valid JSON array, no other text.

    Budget: {budget} ({daily_budget} per day)
    Preferences: {activity_preferences}
    Cost Preference: {cost_preference}
    Already planned (do not repeat): {existing_places}

    Requirements:
    - Focus specifically on {activity_type}
    - Include places suitable for {traveler}
    - Provide accurate ticket pricing
    - Include realistic time estimates

    Return format (JSON array only):
    [
      {{
        "placeName": "Place Name",
        "description": "Brief description (50-80 words)",
        "ticketPricing": "Price or 'Free'",
        "timeToTravel": "X-Y hours",
        "category": "{filter_type}",
        "geoCoordinates": {{"latitude": 0.0, "longitude": 0.0}}
      }}
    ]
    """
)


def _preference_values(preferences: TripPreferences) -> dict:
    cost = preferences.activity_cost_preference.value
    return {
        "location": preferences.destination,
        "total_days": preferences.total_days,
        "total_nights": preferences.nights,
        "traveler": traveler_party(preferences.traveler),
        "budget": preferences.budget,
        "daily_budget": f"{preferences.daily_budget:g}",
        "activity_preferences": activity_titles(preferences.activity_preferences),
        "cost_preference": cost,
        "cost_guidance": COST_PREFERENCE_GUIDANCE[cost],
    }


def build_skeleton_prompt(preferences: TripPreferences) -> str:
    start_date = preferences.start_date.isoformat() if preferences.start_date else "flexible"
    return SKELETON_PROMPT.format(start_date=start_date, **_preference_values(preferences))


def build_detail_prompt(preferences: TripPreferences, skeleton: dict) -> str:
    return DETAIL_PROMPT.format(
        skeleton_json=json.dumps(skeleton, ensure_ascii=False, indent=2),
        **_preference_values(preferences),
    )


def build_more_places_prompt(preferences: TripPreferences, filter_type: str, existing_places) -> str:
    return MORE_PLACES_PROMPT.format(
        activity_type=PLACE_FILTERS.get(filter_type, "activities"),
        filter_type=filter_type,
        existing_places=", ".join(existing_places) or "none",
        **_preference_values(preferences),
    )
