"""Shared fakes for the test suite: scripted model provider, scripted photo lookup, Lisbon sample data."""
import asyncio
import copy
import json

import pytest

from tripgen.ai.gemini_client import ModelClient
from tripgen.trips.enrichment import TripImageEnricher
from tripgen.trips.generator import TripGenerator
from tripgen.trips.models import Owner, TripPreferences
from tripgen.trips.store import InMemoryDocumentStore

MODELS = ["gemini-2.5-flash-lite", "gemini-2.5-flash", "gemini-2.5-pro"]
SAMPLING = {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 16384}


def gemini_payload(text, finish_reason="STOP"):
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}]}


class ScriptedProvider:
    """
    LLM provider that replays a queue of responses.

    Each entry is a str (wrapped in a Gemini envelope), a dict (returned as the
    raw payload) or an Exception (raised).
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def generate(self, model, prompt, sampling):
        self.calls.append((model, prompt))
        await asyncio.sleep(0)
        if not self.responses:
            raise RuntimeError(f"No scripted response left for {model}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return gemini_payload(response)
        return response

    @property
    def models_called(self):
        return [model for model, _ in self.calls]


class ScriptedLookup:
    """Photo lookup answering from a name -> token (or Exception) table; tracks concurrency."""

    def __init__(self, tokens=None, default=None, delay=0.0):
        self.tokens = tokens or {}
        self.default = default
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def lookup(self, place_name, location=None):
        self.calls.append((place_name, location))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            result = self.tokens.get(place_name, self.default)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.active -= 1


LISBON_DAYS = {
    "day1": ("Historic Alfama", ["Castelo de Sao Jorge", "Lisbon Cathedral", "Miradouro de Santa Luzia"]),
    "day2": ("Belem", ["Jeronimos Monastery", "Belem Tower", "Pasteis de Belem"]),
    "day3": ("Modern Lisbon", ["LX Factory", "Oceanario de Lisboa", "Time Out Market"]),
}
LISBON_HOTELS = ["Hotel Avenida Palace", "Memmo Alfama"]
TIMES = ["9:00 AM - 11:00 AM", "11:30 AM - 1:00 PM", "2:00 PM - 4:00 PM"]


def lisbon_skeleton():
    return {
        "travelPlan": {
            "location": "Lisbon, Portugal",
            "duration": "3 Days & 2 Nights",
            "travelers": "A Couple (2 People)",
            "budget": "Moderate",
            "flight": {"details": "Direct flights to LIS", "price": "$450", "bookingUrl": "https://www.google.com/flights"},
            "hotels": [
                {"hotelName": name, "address": f"{name} Street, Lisbon", "price": "$150 per night", "rating": 4.5}
                for name in LISBON_HOTELS
            ],
            "itinerary": {
                day_key: {
                    "theme": theme,
                    "bestTime": "Morning",
                    "plan": [
                        {"placeName": name, "time": TIMES[i], "category": "culture", "estimatedCost": "$-$$"}
                        for i, name in enumerate(places)
                    ],
                }
                for day_key, (theme, places) in LISBON_DAYS.items()
            },
        }
    }


def lisbon_enhanced(skeleton=None, drop=()):
    """Detail-pass answer for the Lisbon skeleton, optionally omitting some places."""
    enhanced = copy.deepcopy(skeleton or lisbon_skeleton())
    plan = enhanced["travelPlan"]
    for hotel in plan["hotels"]:
        hotel["description"] = f"Comfortable stay at {hotel['hotelName']}."
        hotel["geoCoordinates"] = {"latitude": 38.72, "longitude": -9.14}
    for day in plan["itinerary"].values():
        day["plan"] = [place for place in day["plan"] if place["placeName"] not in drop]
        for place in day["plan"]:
            place["description"] = f"{place['placeName']} is one of the highlights of Lisbon."
            place["ticketPricing"] = "EUR 10 (~$11)"
            place["geoCoordinates"] = {"latitude": 38.71, "longitude": -9.13}
            place["bestTimeToVisit"] = "Morning"
            place["timeToTravel"] = "15 minutes"
            place["tip"] = "Arrive early."
    return enhanced


def as_model_text(data, prefix="", suffix=""):
    return prefix + json.dumps(data) + suffix


def all_place_names(travel_plan):
    return [place["placeName"] for day in travel_plan["itinerary"].values() for place in day["plan"]]


@pytest.fixture
def lisbon_preferences():
    return TripPreferences(
        destination="Lisbon",
        total_days=3,
        traveler="A Couple",
        budget="Moderate",
        daily_budget=150,
        activity_preferences=("culture", "food"),
    )


@pytest.fixture
def owner():
    return Owner(id="user-1", email="traveler@example.com")


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def model_client(provider):
    return ModelClient(provider, MODELS, SAMPLING, min_response_chars=100)


@pytest.fixture
def lookup():
    return ScriptedLookup(default="places/generic/photos/1")


@pytest.fixture
def generator(model_client, store, lookup):
    return TripGenerator(model_client, store, enricher=TripImageEnricher(lookup, concurrency=4))
