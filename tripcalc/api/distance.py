# tripcalc/api/distance.py
"""Great-circle distance helpers."""

from __future__ import annotations

import math
from urllib.parse import urlencode

EARTH_RADIUS_METERS = 6371e3
WALKING_SPEED_KMH = 5


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points, in meters.

    Uses the mean Earth radius and ignores ellipsoidal flattening, which is
    fine for the sub-kilometer comparisons done by the location matcher.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) * math.sin(d_phi / 2)
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) * math.sin(d_lambda / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_distance(meters: float) -> str:
    """Return ``"350 m"`` below one kilometer, ``"1.2 km"`` otherwise."""
    if meters < 1000:
        return f"{_round_half_up(meters)} m"
    return f"{meters / 1000:.1f} km"


def estimate_walking_time(meters: float) -> int:
    """Whole minutes needed to walk ``meters`` at an average pace."""
    return _round_half_up(meters * 60 / (WALKING_SPEED_KMH * 1000))


def build_directions_url(origin, destination, travel_mode: str = "walking") -> str:
    """Google Maps directions link between two GeoLocations."""
    params = {
        "api": "1",
        "origin": f"{origin.lat},{origin.lon}",
        "destination": f"{destination.lat},{destination.lon}",
        "travelmode": travel_mode,
    }
    return f"https://www.google.com/maps/dir/?{urlencode(params)}"


__all__ = [
    "calculate_distance",
    "format_distance",
    "estimate_walking_time",
    "build_directions_url",
]
