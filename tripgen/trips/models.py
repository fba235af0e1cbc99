"""Typed schema for trip preferences, itineraries and the persisted trip document."""
import logging
import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Optional, Tuple

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from tripgen.errors import ItineraryValidationError

logger = logging.getLogger("trip-models")

DAY_KEY_PATTERN = re.compile(r"(\d+)")


def _as_text(value: Any) -> Any:
    # Models often answer prices and durations with bare numbers
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


Text = Annotated[str, BeforeValidator(_as_text)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ActivityCostPreference(str, Enum):
    FREE = "free"
    MIXED = "mixed"
    PREMIUM = "premium"


class GeoCoordinates(CamelModel):
    latitude: float
    longitude: float

    @model_validator(mode="before")
    @classmethod
    def from_pair(cls, value):
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return {"latitude": value[0], "longitude": value[1]}
        return value


def _optional_coordinates(value: Any) -> Any:
    """Accept [lat, lon] or {latitude, longitude}; anything unusable becomes None."""
    if value is None or isinstance(value, GeoCoordinates):
        return value
    try:
        return GeoCoordinates.model_validate(value)
    except ValidationError:
        logger.debug(f"Discarding unusable coordinates: {value!r}")
        return None


OptionalCoordinates = Annotated[Optional[GeoCoordinates], BeforeValidator(_optional_coordinates)]


class Owner(BaseModel):
    """Identity stamped onto documents; supplied by the auth provider."""

    id: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None


class TripPreferences(CamelModel):
    """What the traveler asked for. Immutable once submitted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid")

    destination: str = Field(..., min_length=1)
    coordinates: Optional[GeoCoordinates] = None
    total_days: int = Field(..., ge=1, le=30)
    total_nights: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    traveler: str = "Just Me"
    budget: str = "Moderate"
    daily_budget: float = Field(100, ge=0)
    activity_preferences: Tuple[str, ...] = ()
    activity_cost_preference: ActivityCostPreference = ActivityCostPreference.MIXED

    @property
    def nights(self) -> int:
        if self.total_nights is not None:
            return self.total_nights
        return max(self.total_days - 1, 0)


# -------------------- Itinerary --------------------

def _name_fallback(data: Any, field: str) -> Any:
    if isinstance(data, dict) and not data.get(field) and data.get("name"):
        data = dict(data)
        data[field] = data.pop("name")
    return data


class FlightInfo(CamelModel):
    details: Text = ""
    price: Text = ""
    booking_url: Text = "https://www.google.com/flights"


class SkeletonHotel(CamelModel):
    hotel_name: str = Field(..., min_length=1)
    address: Text = ""
    price: Text = ""
    rating: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def accept_name(cls, data):
        return _name_fallback(data, "hotelName")


class EnhancedHotel(SkeletonHotel):
    description: str = Field(..., min_length=1)
    geo_coordinates: OptionalCoordinates = None


class SkeletonPlace(CamelModel):
    place_name: str = Field(..., min_length=1)
    time: Text = ""
    category: Text = ""
    estimated_cost: Text = ""

    @model_validator(mode="before")
    @classmethod
    def accept_name(cls, data):
        return _name_fallback(data, "placeName")


class EnhancedPlace(SkeletonPlace):
    description: str = Field(..., min_length=1)
    ticket_pricing: Text
    geo_coordinates: OptionalCoordinates = None
    best_time_to_visit: Text = ""
    time_to_travel: Text = ""
    tip: Text = ""


class SkeletonDay(CamelModel):
    theme: Text = ""
    best_time: Text = ""
    plan: List[SkeletonPlace] = Field(..., min_length=1)


class EnhancedDay(SkeletonDay):
    plan: List[EnhancedPlace] = Field(..., min_length=1)


def day_number(day_key: str) -> int:
    match = DAY_KEY_PATTERN.search(day_key)
    return int(match.group(1)) if match else 0


def _normalize_days(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    normalized = {}
    for key, day in value.items():
        number = day_number(str(key))
        if number < 1:
            raise ValueError(f"Unrecognized day key: {key!r}")
        normalized[f"day{number}"] = day
    return dict(sorted(normalized.items(), key=lambda item: day_number(item[0])))


class SkeletonTravelPlan(CamelModel):
    location: str = Field(..., min_length=1)
    duration: Text = ""
    travelers: Text = ""
    budget: Text = ""
    flight: Optional[FlightInfo] = None
    hotels: List[SkeletonHotel] = []
    itinerary: Dict[str, SkeletonDay]

    @field_validator("itinerary", mode="before")
    @classmethod
    def normalize_day_keys(cls, value):
        return _normalize_days(value)

    @field_validator("itinerary")
    @classmethod
    def require_days(cls, value):
        if not value:
            raise ValueError("itinerary has no days")
        return value


class EnhancedTravelPlan(SkeletonTravelPlan):
    hotels: List[EnhancedHotel] = []
    itinerary: Dict[str, EnhancedDay]


class SkeletonItinerary(CamelModel):
    travel_plan: SkeletonTravelPlan


class EnhancedItinerary(CamelModel):
    travel_plan: EnhancedTravelPlan


def _unwrap(data: Any) -> Any:
    # Some answers skip the travelPlan wrapper
    if isinstance(data, dict) and "travelPlan" not in data and "itinerary" in data:
        return {"travelPlan": data}
    return data


def parse_skeleton(data: Any, preferences: TripPreferences) -> SkeletonItinerary:
    """
    Validate phase-1 output against the skeleton schema.

    The itinerary must contain day1..dayN for the requested number of days;
    extra days are dropped.

    Raises:
        ItineraryValidationError: If required fields or days are missing
    """
    try:
        skeleton = SkeletonItinerary.model_validate(_unwrap(data))
    except ValidationError as e:
        raise ItineraryValidationError(f"Skeleton itinerary rejected: {e}")

    itinerary = skeleton.travel_plan.itinerary
    expected = [f"day{n}" for n in range(1, preferences.total_days + 1)]
    missing = [key for key in expected if key not in itinerary]
    if missing:
        raise ItineraryValidationError(f"Skeleton itinerary is missing {', '.join(missing)}")

    extra = [key for key in itinerary if key not in expected]
    if extra:
        logger.warning(f"Dropping unrequested days from skeleton: {extra}")
        skeleton.travel_plan.itinerary = {key: itinerary[key] for key in expected}

    return skeleton


def parse_enhanced(data: Any) -> EnhancedItinerary:
    try:
        return EnhancedItinerary.model_validate(_unwrap(data))
    except ValidationError as e:
        raise ItineraryValidationError(f"Enhanced itinerary rejected: {e}")


def dump_itinerary(itinerary: BaseModel) -> Dict[str, Any]:
    return itinerary.model_dump(by_alias=True, mode="json", exclude_none=True)


def ordered_day_keys(itinerary: Dict[str, Any]) -> List[str]:
    return sorted(itinerary.keys(), key=day_number)


def iter_places(travel_plan: Dict[str, Any]) -> Iterator[Tuple[str, int, Dict[str, Any]]]:
    """Yield (day key, index, place) for every place in plan order."""
    itinerary = travel_plan.get("itinerary") or {}
    for day_key in ordered_day_keys(itinerary):
        day = itinerary.get(day_key) or {}
        for i, place in enumerate(day.get("plan") or []):
            if isinstance(place, dict):
                yield day_key, i, place


# -------------------- Images & Document --------------------

class ImageRefMap(CamelModel):
    """Photo tokens keyed by the same coordinates as the itinerary."""

    destination: Optional[str] = None
    hotels: Dict[str, str] = {}
    places: Dict[str, Dict[str, str]] = {}

    def count(self) -> int:
        return (
            (1 if self.destination else 0)
            + len(self.hotels)
            + sum(len(day) for day in self.places.values())
        )

    def place_token(self, day_key: str, index: int) -> Optional[str]:
        return self.places.get(day_key, {}).get(str(index))

    def fill_from(self, other: "ImageRefMap") -> "ImageRefMap":
        """Copy of this map with the slots it lacks taken from ``other``."""
        merged = self.model_copy(deep=True)
        if not merged.destination:
            merged.destination = other.destination
        for key, token in other.hotels.items():
            merged.hotels.setdefault(key, token)
        for day_key, slots in other.places.items():
            day = merged.places.setdefault(day_key, {})
            for index, token in slots.items():
                day.setdefault(index, token)
        return merged


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TripDocument(CamelModel):
    """The single persisted record of one generated trip."""

    id: str
    owner_id: str
    user_email: Optional[str] = None
    preferences: TripPreferences
    trip_plan: Dict[str, Any]
    image_refs: ImageRefMap = Field(default_factory=ImageRefMap)
    is_enhanced: bool = False
    # Set by the enrichment write; imageRefs gets no further bulk update after it
    images_ready: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def travel_plan(self) -> Dict[str, Any]:
        return self.trip_plan.get("travelPlan") or {}

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> "TripDocument":
        return cls.model_validate(data)
