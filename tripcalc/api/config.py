# api/config.py
"""Configuration management for the itinerary API."""
import os
from dotenv import load_dotenv

load_dotenv()

VALID_TRAVEL_MODES = ["walking", "transit", "cycling"]


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "client_id": os.getenv("maps_client_id", ""),
        "client_secret": os.getenv("maps_client_secret", "")
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 3000))


def get_itinerary_config():
    """Get itinerary consistency configuration."""
    return {
        # Route caches older than this are dropped on load
        "route_cache_max_age_days": int(os.getenv("ROUTE_CACHE_MAX_AGE_DAYS", "7")),
        "max_saved_locations": int(os.getenv("MAX_SAVED_LOCATIONS", "50")),
        "default_travel_mode": os.getenv("DEFAULT_TRAVEL_MODE", "walking"),
    }


def get_geocoding_config():
    """Get geocoding collaborator configuration."""
    return {
        "rate_limit_per_hour": int(os.getenv("GEOCODING_RATE_LIMIT_PER_HOUR", "50")),
        "cache_days": int(os.getenv("GEOCODING_CACHE_DAYS", "30")),
        "timeout_seconds": int(os.getenv("GEOCODING_TIMEOUT_SECONDS", "10")),
        "language": os.getenv("GEOCODING_LANGUAGE", "en"),
    }


def validate_itinerary_config():
    """Validate itinerary configuration is properly set."""
    itinerary_config = get_itinerary_config()
    geocoding_config = get_geocoding_config()

    if itinerary_config["route_cache_max_age_days"] < 0:
        raise ValueError("ROUTE_CACHE_MAX_AGE_DAYS must not be negative")

    if itinerary_config["max_saved_locations"] < 1:
        raise ValueError("MAX_SAVED_LOCATIONS must be at least 1")

    if itinerary_config["default_travel_mode"] not in VALID_TRAVEL_MODES:
        raise ValueError(f"Invalid travel mode. Must be one of: {', '.join(VALID_TRAVEL_MODES)}")

    if geocoding_config["rate_limit_per_hour"] < 1:
        raise ValueError("GEOCODING_RATE_LIMIT_PER_HOUR must be at least 1")

    return True
