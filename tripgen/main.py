import asyncio
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

# Load env before imports
load_dotenv()

from tripgen.config import settings
from tripgen.errors import TripGenError, describe_failure
from tripgen.factory import TripServiceFactory
from tripgen.trips.models import Owner, TripDocument, TripPreferences, iter_places
from tripgen.trips.options import ACTIVITY_OPTIONS, BUDGET_OPTIONS, TRAVELER_OPTIONS
from tripgen.trips.projection import TripProgress, subscribe_trip


def ask(prompt: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    answer = input(f"{prompt}{suffix}: ").strip()
    return answer or default


def choose(prompt: str, options) -> str:
    for option in options:
        print(f"  {option['id']}. {option['title']} - {option['desc']}")
    answer = ask(prompt, "1")
    for option in options:
        if answer == str(option["id"]) or answer.lower() == option["title"].lower():
            return option["title"]
    return options[0]["title"]


def ask_preferences() -> TripPreferences:
    destination = ask("Where to?")
    days = ask("How many days?", "3")
    traveler = choose("Who is travelling?", TRAVELER_OPTIONS)
    budget = choose("Budget?", BUDGET_OPTIONS)
    daily_budget = ask("Daily budget per person (USD)", "100")
    print(f"  Activities: {', '.join(ACTIVITY_OPTIONS)}")
    activities = [tag.strip() for tag in ask("Activities (comma separated)").split(",") if tag.strip()]
    cost = ask("Activity cost preference (free/mixed/premium)", "mixed")

    return TripPreferences(
        destination=destination,
        total_days=int(days),
        traveler=traveler,
        budget=budget,
        daily_budget=float(daily_budget),
        activity_preferences=tuple(activities),
        activity_cost_preference=cost,
    )


def print_itinerary(trip: TripDocument):
    plan = trip.travel_plan
    print(f"\n=== {plan.get('location')} - {plan.get('duration')} ===")
    for hotel in plan.get("hotels") or []:
        print(f"  Hotel: {hotel.get('hotelName')} ({hotel.get('price', '')})")

    current_day = None
    for day_key, i, place in iter_places(plan):
        if day_key != current_day:
            current_day = day_key
            theme = (plan["itinerary"][day_key] or {}).get("theme", "")
            print(f"\n  {day_key}: {theme}")
        line = f"    {place.get('time', '')}  {place.get('placeName')}"
        if place.get("ticketPricing"):
            line += f"  [{place['ticketPricing']}]"
        if trip.image_refs.place_token(day_key, i):
            line += "  (photo)"
        print(line)
        if place.get("description"):
            print(f"        {place['description']}")
    print()


async def main():
    print("Initializing Trip Generator...")
    print(f"Models: {', '.join(settings.model_candidates())}")

    factory = TripServiceFactory(settings)
    trips = await factory.initialize()
    owner = Owner(id="cli-user")

    try:
        print("\n--- Trip Generator Ready (Type 'quit' to exit) ---\n")

        while True:
            if ask("Plan a trip? (yes/quit)", "yes").lower() in ["quit", "exit", "no", "n"]:
                break

            try:
                preferences = ask_preferences()
            except (ValidationError, ValueError) as e:
                print(f"Invalid preferences: {e}")
                continue

            print("Generating itinerary skeleton...")
            try:
                trip = await trips.create_trip(preferences, owner)
            except TripGenError as e:
                print(describe_failure(e).message)
                continue

            print_itinerary(trip)
            print("Adding descriptions and prices...")

            progress = TripProgress()

            def on_update(snapshot):
                for event in progress.apply(snapshot):
                    if event == "enhanced":
                        print("[Details added] Fetching photos...")
                    elif event == "images":
                        print(f"[{progress.image_count} photos found]")

            unsubscribe = subscribe_trip(factory.store, settings.trips_collection, trip.id, on_update)
            try:
                await factory.generator.wait_for_background()
            finally:
                unsubscribe()

            if progress.enhancing:
                print("[Details unavailable - keeping the quick itinerary]")
            final = await trips.get_trip(trip.id)
            print_itinerary(final)

    finally:
        await factory.cleanup()
        print("Shutdown complete.")


def run():
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())


if __name__ == "__main__":
    run()
