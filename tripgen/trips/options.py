"""Selection catalogs offered to travelers when creating a trip."""

TRAVELER_OPTIONS = [
    {"id": 1, "title": "Just Me", "desc": "A sole traveler in exploration", "people": "1"},
    {"id": 2, "title": "A Couple", "desc": "Two travelers in tandem", "people": "2 People"},
    {"id": 3, "title": "Family", "desc": "A group of fun loving adventurers", "people": "3 to 5 People"},
    {"id": 4, "title": "Friends", "desc": "A bunch of thrill-seekers", "people": "5 to 10 People"},
]

BUDGET_OPTIONS = [
    {"id": 1, "title": "Cheap", "desc": "Stay conscious of costs", "range": "$50-100 per day"},
    {"id": 2, "title": "Moderate", "desc": "Keep cost on the average side", "range": "$100-300 per day"},
    {"id": 3, "title": "Luxury", "desc": "Don't worry about cost", "range": "$300+ per day"},
]

ACTIVITY_OPTIONS = {
    "nightlife": "Nightlife & Clubbing",
    "hiking": "Hiking & Trekking",
    "beach": "Beach & Water",
    "nature": "Nature & Wildlife",
    "culture": "Culture & History",
    "food": "Food & Dining",
    "shopping": "Shopping",
    "adventure": "Adventure Sports",
    "relaxation": "Relaxation & Spa",
    "photography": "Photography",
}

COST_PREFERENCE_GUIDANCE = {
    "free": "Focus on free/low-cost activities, public spaces, free museums",
    "mixed": "Balance 50/50 between free and paid activities",
    "premium": "Focus on premium paid experiences, tours, special access",
}

# Categories offered when asking for more places on an existing trip
PLACE_FILTERS = {
    "attractions": "tourist attractions, landmarks, monuments, museums, towers, historic sites",
    "restaurants": "restaurants, cafes, dining spots, local cuisine, food markets, bars",
    "nature": "parks, gardens, beaches, lakes, mountains, forests, botanical gardens, nature reserves",
    "shopping": "shopping malls, markets, bazaars, boutiques, local shops, street markets",
    "entertainment": "theaters, cinemas, shows, performances, concerts, nightlife, clubs, entertainment venues",
}


def traveler_party(title: str) -> str:
    """Describe a traveler category with its party size when known."""
    for option in TRAVELER_OPTIONS:
        if option["title"].lower() == title.lower():
            return f"{option['title']} ({option['people']})"
    return title


def activity_titles(tags) -> str:
    titles = [ACTIVITY_OPTIONS.get(tag, tag) for tag in tags]
    return ", ".join(titles) if titles else "General sightseeing"
