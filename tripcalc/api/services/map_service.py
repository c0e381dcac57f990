# tripcalc/api/services/map_service.py
"""Service layer for map-related operations."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Any, List, Optional, Sequence

from tripcalc.api.distance import calculate_distance
from tripcalc.api.migration import is_route_cache_stale
from tripcalc.api.models import DayItinerary, RouteCache, RouteSegment, isoformat_utc

logger = logging.getLogger(__name__)


class MapService:
    """Handles map-related operations over itinerary days."""

    @staticmethod
    def validate_coordinates(lat: float, lon: float) -> bool:
        """Validate that coordinates are within valid ranges.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            True if valid, False otherwise
        """
        return -90 <= lat <= 90 and -180 <= lon <= 180

    @staticmethod
    def calculate_bounds(days: Sequence[DayItinerary]) -> Dict[str, Any]:
        """Calculate bounding box for all located items in an itinerary.

        Args:
            days: Itinerary days

        Returns:
            Dictionary with north, south, east, west bounds
        """
        lats = []
        lons = []

        for day in days:
            for item in day.items:
                if item.location is not None:
                    lats.append(item.location.lat)
                    lons.append(item.location.lon)

        if not lats:
            return {}

        return {
            'north': max(lats),
            'south': min(lats),
            'east': max(lons),
            'west': min(lons)
        }

    @staticmethod
    def estimate_travel_time(distance_meters: float, mode: str = "walking") -> int:
        """Estimate travel time based on distance and mode.

        Args:
            distance_meters: Distance in meters
            mode: Travel mode (walking, transit, cycling)

        Returns:
            Estimated time in minutes
        """
        # Average speeds in meters per minute
        speeds = {
            "walking": 83,     # ~5 km/h
            "transit": 333,    # ~20 km/h
            "cycling": 250     # ~15 km/h
        }

        speed = speeds.get(mode, speeds["walking"])
        return max(1, int(distance_meters / speed))

    @staticmethod
    def build_route_cache(
        day: DayItinerary,
        mode: str = "walking",
        now: Optional[datetime] = None,
    ) -> Optional[RouteCache]:
        """Summarize straight-line travel between a day's located items.

        Items without a location are skipped. Returns None when fewer than
        two items are located.
        """
        located = [item for item in day.items if item.location is not None]
        if len(located) < 2:
            return None

        segments = []
        for origin, destination in zip(located, located[1:]):
            distance = calculate_distance(
                origin.location.lat, origin.location.lon,
                destination.location.lat, destination.location.lon,
            )
            segments.append(RouteSegment(
                from_id=origin.id,
                to_id=destination.id,
                distance=round(distance, 1),
                duration=MapService.estimate_travel_time(distance, mode),
                mode=mode,
            ))

        return RouteCache(
            calculated_at=isoformat_utc(now),
            total_distance=round(sum(s.distance for s in segments), 1),
            total_duration=sum(s.duration for s in segments),
            segments=segments,
        )

    @staticmethod
    def refresh_route_caches(
        days: Sequence[DayItinerary],
        mode: str = "walking",
        max_age_days: float = 7,
        now: Optional[datetime] = None,
    ) -> List[DayItinerary]:
        """Recompute the route cache of every day whose cache is stale.

        Args:
            days: Itinerary days
            mode: Travel mode used for the estimates
            max_age_days: Age after which a cache is recomputed

        Returns:
            New list of days
        """
        refreshed = []
        recalculated = 0

        for day in days:
            if is_route_cache_stale(day, max_age_days, now):
                day = replace(day, route_cache=MapService.build_route_cache(day, mode, now))
                recalculated += 1
            refreshed.append(day)

        logger.info(f"Recalculated route cache for {recalculated}/{len(refreshed)} days")
        return refreshed


# Export for use in other modules
__all__ = ['MapService']
