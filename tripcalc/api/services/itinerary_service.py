# tripcalc/api/services/itinerary_service.py
"""Service layer for trip itinerary state and saved locations."""

import logging
from dataclasses import replace
from typing import Dict, Any, List, Optional, Tuple

from flask import session

from tripcalc.api.autofill import (
    SYNC_MODES,
    auto_fill_all_days,
    count_auto_filled_items,
    detect_disconnected_days,
    remove_auto_filled_items,
    sync_consecutive_days,
    update_auto_filled_items,
)
from tripcalc.api.config import get_itinerary_config
from tripcalc.api.migration import (
    cleanup_route_cache,
    get_itinerary_stats,
    is_route_cache_stale,
    migrate_to_itinerary,
)
from tripcalc.api.models import DayItinerary, DisconnectionReport, ItineraryStats, SavedLocation

logger = logging.getLogger(__name__)

DAYS_KEY = 'itinerary_days'
LOCATIONS_KEY = 'saved_locations'


class NotFoundError(KeyError):
    """A saved location, day or primary location does not exist."""


class ItineraryService:
    """Handles itinerary state and the saved-location lifecycle."""

    @staticmethod
    def get_days() -> List[DayItinerary]:
        """Get the current itinerary from session.

        Stored data is migrated on read and expired route caches are dropped.

        Returns:
            List of itinerary days (empty if none stored)
        """
        days = migrate_to_itinerary(session.get(DAYS_KEY))
        max_age = get_itinerary_config()["route_cache_max_age_days"]
        return cleanup_route_cache(days, max_age)

    @staticmethod
    def store_days(days: List[DayItinerary]) -> List[DayItinerary]:
        """Store itinerary days in Flask session.

        Route caches that no longer describe their day's items are dropped
        before storing.

        Args:
            days: Itinerary days; day numbers must be unique

        Returns:
            The days as stored

        Raises:
            ValueError: If day numbers repeat or an auto-filled item does not
                point at an existing saved location
        """
        numbers = [day.day_number for day in days]
        if len(numbers) != len(set(numbers)):
            raise ValueError("Day numbers must be unique")

        known = {loc.id for loc in ItineraryService.get_saved_locations()}
        for day in days:
            for item in day.items:
                if item.is_auto_filled and item.auto_fill_source not in known:
                    raise ValueError(
                        f"Item {item.id} on day {day.day_number} is auto-filled from "
                        f"unknown saved location {item.auto_fill_source!r}"
                    )

        max_age = get_itinerary_config()["route_cache_max_age_days"]
        days = [
            replace(day, route_cache=None)
            if day.route_cache is not None and is_route_cache_stale(day, max_age)
            else day
            for day in days
        ]

        session[DAYS_KEY] = [day.to_dict() for day in days]
        session.modified = True
        logger.debug(f"Stored {len(days)} itinerary days in session")
        return days

    @staticmethod
    def get_saved_locations() -> List[SavedLocation]:
        return [SavedLocation.from_dict(data) for data in session.get(LOCATIONS_KEY, [])]

    @staticmethod
    def store_saved_locations(locations: List[SavedLocation]) -> None:
        session[LOCATIONS_KEY] = [location.to_dict() for location in locations]
        session.modified = True

    @staticmethod
    def get_primary_location() -> Optional[SavedLocation]:
        for location in ItineraryService.get_saved_locations():
            if location.is_primary:
                return location
        return None

    @staticmethod
    def clear_session() -> None:
        """Clear itinerary data from session."""
        for key in (DAYS_KEY, LOCATIONS_KEY):
            session.pop(key, None)
        session.modified = True
        logger.debug("Cleared itinerary from session")

    # ------------------------------------------------------------------
    # Saved-location lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _promote(
        locations: List[SavedLocation],
        days: List[DayItinerary],
        new_primary: SavedLocation,
    ) -> Tuple[List[SavedLocation], List[DayItinerary]]:
        """Make ``new_primary`` the only primary location.

        Items auto-filled from a previous primary are re-pointed; without a
        previous primary every day gets its bookends.
        """
        old_primary = next(
            (loc for loc in locations if loc.is_primary and loc.id != new_primary.id),
            None,
        )
        locations = [
            loc if loc.id == new_primary.id else replace(loc, is_primary=False)
            for loc in locations
        ]

        if old_primary is not None:
            logger.info(f"Primary location changed from {old_primary.id} to {new_primary.id}")
            days = update_auto_filled_items(days, old_primary.id, new_primary)
        else:
            logger.info(f"Auto-filling {len(days)} days from {new_primary.id}")
            days = auto_fill_all_days(days, new_primary)

        return locations, days

    @staticmethod
    def add_saved_location(location: SavedLocation) -> SavedLocation:
        """Add a saved location, applying primary-accommodation rules.

        Raises:
            ValueError: If the location limit is reached or the id is taken
        """
        locations = ItineraryService.get_saved_locations()
        days = ItineraryService.get_days()

        if len(locations) >= get_itinerary_config()["max_saved_locations"]:
            raise ValueError("Saved location limit reached")
        if any(loc.id == location.id for loc in locations):
            raise ValueError(f"Saved location {location.id} already exists")

        locations.append(location)
        if location.is_primary:
            locations, days = ItineraryService._promote(locations, days, location)

        ItineraryService.store_saved_locations(locations)
        ItineraryService.store_days(days)
        return location

    @staticmethod
    def update_saved_location(location: SavedLocation) -> SavedLocation:
        """Replace a saved location; auto-filled items follow it.

        Raises:
            NotFoundError: If no saved location has this id
        """
        locations = ItineraryService.get_saved_locations()
        days = ItineraryService.get_days()

        old = next((loc for loc in locations if loc.id == location.id), None)
        if old is None:
            raise NotFoundError(location.id)

        locations = [location if loc.id == location.id else loc for loc in locations]

        if location.is_primary and not old.is_primary:
            locations, days = ItineraryService._promote(locations, days, location)
        else:
            # Same id, so this only refreshes the copied coordinates
            days = update_auto_filled_items(days, old.id, location)

        ItineraryService.store_saved_locations(locations)
        ItineraryService.store_days(days)
        return location

    @staticmethod
    def set_primary_location(location_id: str) -> SavedLocation:
        locations = ItineraryService.get_saved_locations()
        target = next((loc for loc in locations if loc.id == location_id), None)
        if target is None:
            raise NotFoundError(location_id)
        return ItineraryService.update_saved_location(replace(target, is_primary=True))

    @staticmethod
    def delete_saved_location(location_id: str) -> int:
        """Delete a saved location and every item auto-filled from it.

        Returns:
            Number of auto-filled items removed
        """
        locations = ItineraryService.get_saved_locations()
        if not any(loc.id == location_id for loc in locations):
            raise NotFoundError(location_id)

        days = ItineraryService.get_days()
        removed = count_auto_filled_items(days, location_id)

        ItineraryService.store_saved_locations([loc for loc in locations if loc.id != location_id])
        ItineraryService.store_days(remove_auto_filled_items(days, location_id))
        logger.info(f"Deleted saved location {location_id} and {removed} auto-filled items")
        return removed

    @staticmethod
    def auto_fill_from_primary() -> List[DayItinerary]:
        """Add missing bookends to every day from the primary location.

        Raises:
            NotFoundError: If no primary location is set
        """
        primary = ItineraryService.get_primary_location()
        if primary is None:
            raise NotFoundError("primary location")

        days = auto_fill_all_days(ItineraryService.get_days(), primary)
        return ItineraryService.store_days(days)

    # ------------------------------------------------------------------
    # Day connections
    # ------------------------------------------------------------------

    @staticmethod
    def check_connections() -> List[DisconnectionReport]:
        reports = detect_disconnected_days(ItineraryService.get_days())
        if reports:
            logger.info(f"Found {len(reports)} disconnected days")
        return reports

    @staticmethod
    def sync_days(day_number: int, mode: str) -> Tuple[DayItinerary, DayItinerary]:
        """Sync ``day_number`` with the day before it.

        Args:
            day_number: The later day of the pair
            mode: "forward" or "backward"

        Returns:
            The updated (previous, current) days

        Raises:
            ValueError: If the mode is unknown
            NotFoundError: If the day or its predecessor does not exist
        """
        if mode not in SYNC_MODES:
            raise ValueError(f"Invalid sync mode. Must be one of: {', '.join(SYNC_MODES)}")

        days = ItineraryService.get_days()
        index = next((i for i, day in enumerate(days) if day.day_number == day_number), None)
        if index is None or index == 0:
            raise NotFoundError(day_number)

        previous_day, current_day = sync_consecutive_days(days[index - 1], days[index], mode)
        days[index - 1] = previous_day
        days[index] = current_day
        ItineraryService.store_days(days)
        return previous_day, current_day

    @staticmethod
    def get_stats() -> ItineraryStats:
        return get_itinerary_stats(ItineraryService.get_days())

    @staticmethod
    def get_session_info() -> Dict[str, Any]:
        """Get current session information.

        Returns:
            Dictionary with session info
        """
        primary = ItineraryService.get_primary_location()
        return {
            'has_itinerary': DAYS_KEY in session,
            'days': len(session.get(DAYS_KEY, [])),
            'saved_locations': len(session.get(LOCATIONS_KEY, [])),
            'primary_location': primary.id if primary else None,
        }
