# tripcalc/api/autofill.py
"""Keeps a multi-day itinerary spatially coherent.

Accommodation bookends are inserted from the traveler's primary saved
location, day boundaries are compared with a fuzzy location matcher, and
gaps can be closed by copying a boundary location onto the adjacent day.

Every function takes plain values and returns new ones; nothing here does
I/O or keeps state between calls.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

from tripcalc.api.distance import calculate_distance
from tripcalc.api.models import (
    ACCOMMODATION,
    DayItinerary,
    DisconnectionReport,
    GeoLocation,
    ItineraryItem,
    SavedLocation,
    TimeSlot,
    new_id,
)

logger = logging.getLogger(__name__)

MATCH_TOLERANCE_METERS = 50

CHECK_OUT_NAME = "Check-out"
CHECK_OUT_TIME = "09:00"
CHECK_IN_NAME = "Check-in"
CHECK_IN_TIME = "18:00"

SYNC_MODES = ("forward", "backward")


def _with_items(day: DayItinerary, items: Iterable[ItineraryItem]) -> DayItinerary:
    """Return ``day`` holding ``items``; a changed sequence drops the route cache."""
    items = tuple(items)
    if items == day.items:
        return day
    return replace(day, items=items, route_cache=None)


def _is_from_source(item: ItineraryItem, location_id: str) -> bool:
    return item.is_auto_filled and item.auto_fill_source == location_id


# ---------------------------------------------------------------------------
# Location matching
# ---------------------------------------------------------------------------

def locations_match(loc1: Optional[GeoLocation], loc2: Optional[GeoLocation]) -> bool:
    """Whether two points are the same place for continuity purposes.

    Equal non-empty place ids match outright; otherwise the points must be
    within ``MATCH_TOLERANCE_METERS`` of each other.
    """
    if loc1 is None or loc2 is None:
        return False

    if loc1.place_id and loc2.place_id and loc1.place_id == loc2.place_id:
        return True

    distance = calculate_distance(loc1.lat, loc1.lon, loc2.lat, loc2.lon)
    return distance <= MATCH_TOLERANCE_METERS


# ---------------------------------------------------------------------------
# Accommodation auto-fill
# ---------------------------------------------------------------------------

def has_accommodation_at(items: Sequence[ItineraryItem], position: str) -> bool:
    """Check whether the first ("start") or last ("end") item is accommodation."""
    if not items:
        return False

    item = items[0] if position == "start" else items[-1]
    return item.category == ACCOMMODATION


def create_accommodation_item(name: str, saved_location: SavedLocation, time: str) -> ItineraryItem:
    """Build a zero-cost check-in/check-out marker tied to ``saved_location``."""
    return ItineraryItem(
        id=new_id(),
        name=name,
        category=ACCOMMODATION,
        amount=0,
        visits=1,
        is_one_time=False,
        notes="",
        time_slot=TimeSlot(start_time=time),
        location=saved_location.location,
        is_auto_filled=True,
        auto_fill_source=saved_location.id,
    )


def auto_fill_day_accommodation(day: DayItinerary, primary_location: SavedLocation) -> DayItinerary:
    """Make the day start and end at the primary accommodation.

    A "Check-out" is prepended when the first item is not accommodation and
    a "Check-in" is appended when the last one is not. The two ends are
    checked independently.
    """
    # Both ends are judged on the original items; an empty day needs both.
    needs_start = not has_accommodation_at(day.items, "start")
    needs_end = not has_accommodation_at(day.items, "end")

    items = list(day.items)
    if needs_start:
        items.insert(0, create_accommodation_item(CHECK_OUT_NAME, primary_location, CHECK_OUT_TIME))
    if needs_end:
        items.append(create_accommodation_item(CHECK_IN_NAME, primary_location, CHECK_IN_TIME))

    return _with_items(day, items)


def auto_fill_all_days(days: Sequence[DayItinerary], primary_location: SavedLocation) -> List[DayItinerary]:
    filled = [auto_fill_day_accommodation(day, primary_location) for day in days]
    logger.debug("Auto-filled %d days from saved location %s", len(filled), primary_location.id)
    return filled


def remove_auto_filled_items(days: Sequence[DayItinerary], location_id: str) -> List[DayItinerary]:
    """Drop every item auto-filled from ``location_id`` (its source was deleted)."""
    return [
        _with_items(day, (item for item in day.items if not _is_from_source(item, location_id)))
        for day in days
    ]


def update_auto_filled_items(
    days: Sequence[DayItinerary],
    old_location_id: str,
    new_location: SavedLocation,
) -> List[DayItinerary]:
    """Re-point items auto-filled from ``old_location_id`` at ``new_location``.

    Only ``location`` and ``auto_fill_source`` change; names, times and costs
    are kept.
    """
    def repoint(item: ItineraryItem) -> ItineraryItem:
        if _is_from_source(item, old_location_id):
            return replace(item, location=new_location.location, auto_fill_source=new_location.id)
        return item

    return [_with_items(day, (repoint(item) for item in day.items)) for day in days]


def count_auto_filled_items(days: Sequence[DayItinerary], location_id: str) -> int:
    return sum(1 for day in days for item in day.items if _is_from_source(item, location_id))


# ---------------------------------------------------------------------------
# Cross-day synchronisation
# ---------------------------------------------------------------------------

def sync_consecutive_days(
    previous_day: DayItinerary,
    current_day: DayItinerary,
    mode: str,
) -> Tuple[DayItinerary, DayItinerary]:
    """Close the gap between two adjacent days.

    ``"forward"`` copies the previous day's last location onto the current
    day's first item; ``"backward"`` copies the current day's first location
    onto the previous day's last item. Only the receiving item's
    ``location`` changes.
    """
    prev_items = list(previous_day.items)
    curr_items = list(current_day.items)

    if mode == "forward":
        last_item = prev_items[-1] if prev_items else None
        if last_item is not None and last_item.location is not None and curr_items:
            curr_items[0] = replace(curr_items[0], location=last_item.location)
    else:
        first_item = curr_items[0] if curr_items else None
        if first_item is not None and first_item.location is not None and prev_items:
            prev_items[-1] = replace(prev_items[-1], location=first_item.location)

    return _with_items(previous_day, prev_items), _with_items(current_day, curr_items)


def detect_disconnected_days(days: Sequence[DayItinerary]) -> List[DisconnectionReport]:
    """Report adjacent days whose boundary locations do not match.

    Days without items are skipped, as are boundaries where either item has
    no location.
    """
    disconnected = []

    for current_day, next_day in zip(days, days[1:]):
        if not current_day.items or not next_day.items:
            continue

        last_location = current_day.items[-1].location
        first_location = next_day.items[0].location

        if last_location and first_location and not locations_match(last_location, first_location):
            disconnected.append(
                DisconnectionReport(
                    day_number=next_day.day_number,
                    last_location=last_location.address,
                    next_location=first_location.address,
                )
            )

    return disconnected


__all__ = [
    "MATCH_TOLERANCE_METERS",
    "SYNC_MODES",
    "locations_match",
    "has_accommodation_at",
    "create_accommodation_item",
    "auto_fill_day_accommodation",
    "auto_fill_all_days",
    "remove_auto_filled_items",
    "update_auto_filled_items",
    "count_auto_filled_items",
    "sync_consecutive_days",
    "detect_disconnected_days",
]
