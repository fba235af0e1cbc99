"""Merge a detail-pass itinerary back onto the skeleton the traveler already saw."""
import copy
import logging
import unicodedata
from typing import Any, Dict, List

from tripgen.trips.models import day_number, ordered_day_keys

logger = logging.getLogger("itinerary-merge")


def _key(name: Any) -> str:
    # "Belém Tower" and "belem  tower" name the same place
    decomposed = unicodedata.normalize("NFKD", str(name or ""))
    plain = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(plain.lower().split())


def _fallback_place(place: Dict[str, Any]) -> Dict[str, Any]:
    restored = dict(place)
    category = f" ({place['category']})" if place.get("category") else ""
    time = f" planned for {place['time']}" if place.get("time") else ""
    if not restored.get("description"):
        restored["description"] = f"{place['placeName']}{category}{time}."
    if not restored.get("ticketPricing"):
        restored["ticketPricing"] = place.get("estimatedCost") or "See venue"
    return restored


def _fallback_hotel(hotel: Dict[str, Any]) -> Dict[str, Any]:
    restored = dict(hotel)
    if not restored.get("description"):
        restored["description"] = f"{hotel['hotelName']}, {hotel.get('address') or 'address on request'}."
    return restored


def _merge_entries(skeleton_items: List[Dict[str, Any]], enhanced_items: Any, name_field: str,
                   fallback, label: str) -> List[Dict[str, Any]]:
    enhanced_by_name = {}
    for item in enhanced_items if isinstance(enhanced_items, list) else []:
        if not isinstance(item, dict):
            continue
        key = _key(item.get(name_field) or item.get("name"))
        if key and key not in enhanced_by_name:
            enhanced_by_name[key] = item

    skeleton_keys = set()
    merged = []
    for original in skeleton_items:
        key = _key(original[name_field])
        skeleton_keys.add(key)
        enhanced = enhanced_by_name.get(key)
        if enhanced is None:
            logger.warning(f"Detail pass dropped {label} {original[name_field]!r}; restoring it")
            merged.append(fallback(original))
            continue
        entry = {**original, **enhanced}
        # The name the traveler already saw wins over any rewording
        entry[name_field] = original[name_field]
        entry.pop("name", None)
        merged.append(fallback(entry))

    extras = [item.get(name_field) or item.get("name") for key, item in enhanced_by_name.items()
              if key not in skeleton_keys]
    if extras:
        # Positions must match the skeleton so imageRefs coordinates stay valid
        logger.info(f"Ignoring {label} entries the skeleton did not have (new or reworded): {extras}")
    return merged


def carry_over_additions(enhanced: Dict[str, Any], skeleton: Dict[str, Any],
                         current: Dict[str, Any]) -> Dict[str, Any]:
    """
    Append places written to the live document after the skeleton was captured.

    Places are only ever appended to a day's plan, so anything past the
    skeleton's length in the current plan is a later addition. It keeps its
    position, and with it any imageRefs slot already stored for it.

    Args:
        enhanced: Merged detail itinerary ({"travelPlan": ...})
        skeleton: The skeleton the detail pass was built from
        current: The document's tripPlan as stored right now

    Returns:
        Copy of ``enhanced`` with the additions appended per day
    """
    result = copy.deepcopy(enhanced)
    skeleton_days = (skeleton.get("travelPlan") or {}).get("itinerary") or {}
    current_days = (current.get("travelPlan") or {}).get("itinerary") or {}
    for day_key, day in (result["travelPlan"].get("itinerary") or {}).items():
        seen = len((skeleton_days.get(day_key) or {}).get("plan") or [])
        added = ((current_days.get(day_key) or {}).get("plan") or [])[seen:]
        if added:
            logger.info(f"Keeping {len(added)} place(s) added to {day_key} during the detail pass")
            day["plan"] = list(day.get("plan") or []) + copy.deepcopy(added)
    return result


def merge_enhanced(skeleton: Dict[str, Any], enhanced: Dict[str, Any]) -> Dict[str, Any]:
    """
    Union the detail-pass output with the skeleton.

    Every skeleton day and every skeleton place (matched by name, ignoring
    case, spacing and accents) is kept in skeleton order. Places the model
    dropped, or returned without a description or price, get fallback detail
    fields. Places that only the detail pass names are left out.

    Args:
        skeleton: Skeleton itinerary ({"travelPlan": ...})
        enhanced: Extracted detail-pass JSON

    Returns:
        Merged itinerary dict, not yet validated
    """
    base = copy.deepcopy(skeleton.get("travelPlan") or {})
    detail = enhanced.get("travelPlan") if isinstance(enhanced.get("travelPlan"), dict) else enhanced
    if not isinstance(detail, dict):
        detail = {}

    merged = {**base, **{k: v for k, v in detail.items() if k not in ("itinerary", "hotels")}}
    merged["location"] = base.get("location") or detail.get("location")

    merged["hotels"] = _merge_entries(base.get("hotels") or [], detail.get("hotels"), "hotelName",
                                      _fallback_hotel, "hotel")

    raw_days = detail.get("itinerary") if isinstance(detail.get("itinerary"), dict) else {}
    detail_days = {f"day{day_number(str(key))}": day for key, day in raw_days.items()}
    skeleton_days = base.get("itinerary") or {}
    itinerary = {}
    for day_key in ordered_day_keys(skeleton_days):
        day = skeleton_days[day_key]
        detail_day = detail_days.get(day_key) if isinstance(detail_days.get(day_key), dict) else {}
        merged_day = {**day, **{k: v for k, v in detail_day.items() if k != "plan"}}
        merged_day["plan"] = _merge_entries(day.get("plan") or [], detail_day.get("plan"), "placeName",
                                            _fallback_place, f"{day_key} place")
        itinerary[day_key] = merged_day

    extra_days = [key for key in detail_days if key not in itinerary]
    if extra_days:
        logger.info(f"Ignoring days outside the skeleton: {extra_days}")

    merged["itinerary"] = itinerary
    return {"travelPlan": merged}
