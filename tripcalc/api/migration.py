# tripcalc/api/migration.py
"""Lazy migration of stored calculator state, route-cache expiry and usage stats.

Older trips were saved before itinerary fields existed. They are upgraded
on read: missing fields get their defaults, nothing is dropped, and the
database schema does not need to change.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

from tripcalc.api.models import DayItinerary, ItineraryItem, ItineraryStats

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_CACHE_MAX_AGE_DAYS = 7


def migrate_to_itinerary(calculator_state: Any) -> List[DayItinerary]:
    """Upgrade a stored list of day plans to itinerary days.

    Anything that is not a list is treated as an empty trip.
    """
    if not isinstance(calculator_state, list):
        return []

    return [DayItinerary.from_dict(day) for day in calculator_state]


def has_itinerary_data(day: DayItinerary) -> bool:
    return any(
        item.time_slot is not None
        or item.location is not None
        or item.booking_required
        or item.is_ai_suggestion
        for item in day.items
    )


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO timestamp (``Z`` suffix allowed); naive values are UTC."""
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _as_utc(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _route_cache_expired(day: DayItinerary, max_age: timedelta, now: datetime) -> bool:
    calculated_at = parse_timestamp(day.route_cache.calculated_at)
    if calculated_at is None:
        # age unknown
        return True
    return now - calculated_at > max_age


def cleanup_route_cache(
    days: Sequence[DayItinerary],
    max_age_days: float = DEFAULT_ROUTE_CACHE_MAX_AGE_DAYS,
    now: Optional[datetime] = None,
) -> List[DayItinerary]:
    """Drop route caches older than ``max_age_days``; other days are returned as-is."""
    now = _as_utc(now)
    max_age = timedelta(days=max_age_days)

    cleaned = []
    for day in days:
        if day.route_cache is not None and _route_cache_expired(day, max_age, now):
            logger.debug("Dropping expired route cache for day %d", day.day_number)
            day = replace(day, route_cache=None)
        cleaned.append(day)
    return cleaned


def is_route_cache_stale(
    day: DayItinerary,
    max_age_days: float = DEFAULT_ROUTE_CACHE_MAX_AGE_DAYS,
    now: Optional[datetime] = None,
) -> bool:
    """True when the day has no usable route cache.

    A cache is unusable when it is missing, too old, or its segments no
    longer chain the day's located items in order.
    """
    if day.route_cache is None:
        return True

    now = _as_utc(now)
    if _route_cache_expired(day, timedelta(days=max_age_days), now):
        return True

    located = [item.id for item in day.items if item.location is not None]
    expected = list(zip(located, located[1:]))
    actual = [(segment.from_id, segment.to_id) for segment in day.route_cache.segments]
    return expected != actual


def get_itinerary_stats(days: Sequence[DayItinerary]) -> ItineraryStats:
    """Tally itinerary feature usage across a trip."""
    total_activities = 0
    activities_with_time = 0
    activities_with_location = 0
    activities_with_booking = 0
    ai_suggestions = 0
    days_with_itinerary = 0

    for day in days:
        total_activities += len(day.items)
        day_has_itinerary = False

        for item in day.items:
            if item.time_slot is not None and item.time_slot.start_time:
                activities_with_time += 1
                day_has_itinerary = True

            if item.location is not None:
                activities_with_location += 1
                day_has_itinerary = True

            if item.booking_required:
                activities_with_booking += 1

            if item.is_ai_suggestion:
                ai_suggestions += 1

        if day_has_itinerary:
            days_with_itinerary += 1

    return ItineraryStats(
        total_activities=total_activities,
        activities_with_time=activities_with_time,
        activities_with_location=activities_with_location,
        activities_with_booking=activities_with_booking,
        ai_suggestions=ai_suggestions,
        days_with_itinerary=days_with_itinerary,
        average_activities_per_day=total_activities / len(days) if days else 0,
    )


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

def sort_items_by_time(items: Sequence[ItineraryItem]) -> List[ItineraryItem]:
    """Order items by start time; untimed items keep their order at the end."""
    def key(item: ItineraryItem):
        start = item.time_slot.start_time if item.time_slot else None
        return (start is None, start or "")

    return sorted(items, key=key)


def _minutes(clock: str) -> int:
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


def calculate_duration_between(end_time: str, start_time: str) -> int:
    """Minutes from ``end_time`` of one activity to ``start_time`` of the next."""
    return _minutes(start_time) - _minutes(end_time)


def format_duration(minutes: int, locale: str = "en") -> str:
    hours, mins = divmod(minutes, 60)
    minute_unit = "min" if locale == "es" else "m"

    if hours > 0 and mins > 0:
        return f"{hours}h {mins}{minute_unit}"
    if hours > 0:
        return f"{hours}h"
    return f"{mins}{minute_unit}"
