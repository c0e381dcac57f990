# tripcalc/api/geocoding.py
"""Geocoding collaborator.

Turns addresses into GeoLocation values (and back) through the Google Maps
client. The itinerary consistency code never calls this module; the routes
use it to attach locations before items and saved locations are stored.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional

import googlemaps
from googlemaps import exceptions as gmaps_exceptions

from tripcalc.api.config import get_geocoding_config, get_google_maps_config
from tripcalc.api.models import GeoLocation

logger = logging.getLogger(__name__)

_gmaps: googlemaps.Client | None = None
_geocoding_cache: Dict[str, tuple[GeoLocation, float]] = {}
_rate_limiter: Dict[str, List[float]] = {}
_lock = threading.Lock()


class GeocodingError(Exception):
    """The geocoding service failed."""


class RateLimitExceededError(GeocodingError):
    """The user made too many geocoding requests in the last hour."""


class AddressNotFoundError(GeocodingError):
    """No result for the address or coordinates."""


class GeocodingTimeoutError(GeocodingError):
    """The geocoding service took too long to respond."""


def _get_client() -> googlemaps.Client:
    """Return a cached googlemaps.Client instance."""
    global _gmaps
    if _gmaps is None:
        api_key = get_google_maps_config().get("api_key", "")
        if not api_key:
            logger.error("No Google Maps API key found in config")
            raise GeocodingError("Geocoding is not configured")
        try:
            logger.info(f"Initializing Google Maps client with key: {api_key[:10]}...")
            _gmaps = googlemaps.Client(
                key=api_key,
                timeout=get_geocoding_config()["timeout_seconds"],
            )
        except ValueError as e:
            logger.error(f"Failed to initialize Google Maps client: {e}")
            raise GeocodingError(str(e)) from e
    return _gmaps


def _check_rate_limit(user_id: str) -> bool:
    """Record a request for ``user_id``; False once the hourly limit is hit."""
    limit = get_geocoding_config()["rate_limit_per_hour"]
    now = time.time()
    one_hour_ago = now - 60 * 60

    with _lock:
        requests = [ts for ts in _rate_limiter.get(user_id, []) if ts > one_hour_ago]
        if len(requests) >= limit:
            _rate_limiter[user_id] = requests
            return False
        requests.append(now)
        _rate_limiter[user_id] = requests
    return True


def _cache_key(address: str, city_bounds: Optional[dict]) -> str:
    if city_bounds:
        bounds = "{north},{south},{east},{west}".format(**city_bounds)
    else:
        bounds = "no-bounds"
    return f"{address.lower().strip()}:{bounds}"


def _cache_ttl_seconds() -> int:
    return get_geocoding_config()["cache_days"] * 24 * 60 * 60


def _get_cached(key: str) -> Optional[GeoLocation]:
    with _lock:
        entry = _geocoding_cache.get(key)
        if entry is None:
            return None
        location, stored_at = entry
        if time.time() - stored_at > _cache_ttl_seconds():
            del _geocoding_cache[key]
            return None
    return location


def _set_cached(key: str, location: GeoLocation) -> None:
    with _lock:
        _geocoding_cache[key] = (location, time.time())


def cleanup_geocoding_cache() -> int:
    """Drop expired cache entries; returns how many were removed."""
    now = time.time()
    ttl = _cache_ttl_seconds()
    with _lock:
        expired = [k for k, (_, stored_at) in _geocoding_cache.items() if now - stored_at > ttl]
        for key in expired:
            del _geocoding_cache[key]
    if expired:
        logger.info(f"Removed {len(expired)} expired geocoding cache entries")
    return len(expired)


def reset_geocoding_state() -> None:
    """Forget cached results, rate-limit history and the client."""
    global _gmaps
    with _lock:
        _geocoding_cache.clear()
        _rate_limiter.clear()
    _gmaps = None


def _to_geolocation(result: dict) -> GeoLocation:
    loc = result["geometry"]["location"]
    place_id = result.get("place_id")
    return GeoLocation(
        lat=float(loc["lat"]),
        lon=float(loc["lng"]),
        address=result.get("formatted_address", ""),
        place_id=str(place_id) if place_id else None,
    )


def _call(description: str, func, *args, **kwargs) -> list:
    """Run a client call, translating googlemaps failures."""
    try:
        return func(*args, **kwargs)
    except gmaps_exceptions.Timeout as e:
        logger.warning(f"Geocoding timeout for {description}")
        raise GeocodingTimeoutError("GEOCODING_TIMEOUT") from e
    except (gmaps_exceptions.ApiError, gmaps_exceptions.TransportError) as e:
        logger.error(f"Geocoding error for {description}: {e}")
        raise GeocodingError("GEOCODING_FAILED") from e


def geocode(address: str, user_id: str, city_bounds: Optional[dict] = None) -> GeoLocation:
    """Resolve a free-text address to a GeoLocation.

    Args:
        address: Address or place name (at least 3 characters)
        user_id: Caller identity used for rate limiting
        city_bounds: Optional ``{north, south, east, west}`` box to bias results

    Returns:
        The best matching GeoLocation

    Raises:
        ValueError: If the address is too short
        RateLimitExceededError: If the user exceeded the hourly limit
        AddressNotFoundError: If nothing matched
        GeocodingTimeoutError: If the service timed out
        GeocodingError: For any other service failure
    """
    if not address or len(address.strip()) < 3:
        raise ValueError("Address must be at least 3 characters")

    if not _check_rate_limit(user_id):
        raise RateLimitExceededError("RATE_LIMIT_EXCEEDED")

    key = _cache_key(address, city_bounds)
    cached = _get_cached(key)
    if cached is not None:
        logger.debug(f"Geocoding cache hit for '{address}'")
        return cached

    params = {"language": get_geocoding_config()["language"]}
    if city_bounds:
        params["bounds"] = {
            "northeast": (city_bounds["north"], city_bounds["east"]),
            "southwest": (city_bounds["south"], city_bounds["west"]),
        }

    client = _get_client()
    logger.debug(f"Geocoding address: {address}")
    results = _call(f"'{address}'", client.geocode, address, **params)

    if not results:
        logger.warning(f"No results found for address: {address}")
        raise AddressNotFoundError("ADDRESS_NOT_FOUND")

    location = _to_geolocation(results[0])
    _set_cached(key, location)
    logger.debug(f"Geocoded {address} to {location.lat}, {location.lon}")
    return location


def reverse_geocode(lat: float, lon: float, user_id: str) -> GeoLocation:
    """Resolve coordinates to the nearest address.

    The returned GeoLocation keeps the requested coordinates and takes the
    address and place id from the best result.
    """
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError("Coordinates out of range")

    if not _check_rate_limit(user_id):
        raise RateLimitExceededError("RATE_LIMIT_EXCEEDED")

    key = f"reverse:{lat:.6f},{lon:.6f}"
    cached = _get_cached(key)
    if cached is not None:
        logger.debug(f"Reverse geocoding cache hit for {lat}, {lon}")
        return cached

    client = _get_client()
    results = _call(
        f"({lat}, {lon})",
        client.reverse_geocode,
        (lat, lon),
        language=get_geocoding_config()["language"],
    )

    if not results:
        logger.warning(f"No address found for coordinates: {lat}, {lon}")
        raise AddressNotFoundError("ADDRESS_NOT_FOUND")

    best = _to_geolocation(results[0])
    location = GeoLocation(lat=lat, lon=lon, address=best.address, place_id=best.place_id)
    _set_cached(key, location)
    return location


# Re-export for clean imports elsewhere
__all__ = [
    "GeocodingError",
    "RateLimitExceededError",
    "AddressNotFoundError",
    "GeocodingTimeoutError",
    "geocode",
    "reverse_geocode",
    "cleanup_geocoding_cache",
    "reset_geocoding_state",
]
