# tripcalc/routes/itinerary.py
"""Itinerary routes and blueprint configuration."""

import logging

from flask import Blueprint, jsonify, request

from tripcalc.api.config import VALID_TRAVEL_MODES, get_itinerary_config
from tripcalc.api.geocoding import (
    AddressNotFoundError,
    GeocodingError,
    GeocodingTimeoutError,
    RateLimitExceededError,
    geocode,
    reverse_geocode,
)
from tripcalc.api.models import DayItinerary, SavedLocation
from tripcalc.api.services.itinerary_service import ItineraryService, NotFoundError
from tripcalc.api.services.map_service import MapService

logger = logging.getLogger(__name__)


def _error(error, message, status):
    return jsonify({"error": error, "message": message}), status


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _client_id():
    return request.remote_addr or "anonymous"


def create_itinerary_blueprint():
    """Create and configure the itinerary blueprint.

    Returns:
        Configured Flask Blueprint
    """
    itinerary_bp = Blueprint("itinerary", __name__, url_prefix="/itinerary")

    @itinerary_bp.errorhandler(ValueError)
    def handle_value_error(e):
        return _error("Invalid request", str(e), 400)

    @itinerary_bp.errorhandler(NotFoundError)
    def handle_not_found_resource(e):
        return _error("Not found", f"Unknown {e.args[0] if e.args else 'resource'}", 404)

    @itinerary_bp.errorhandler(RateLimitExceededError)
    def handle_rate_limit(e):
        return _error(
            "Rate limit exceeded",
            "You have exceeded the maximum number of geocoding requests per hour. Please try again later.",
            429,
        )

    @itinerary_bp.errorhandler(AddressNotFoundError)
    def handle_not_found(e):
        return _error(
            "Address not found",
            "Could not find the specified address. Please try a different address or be more specific.",
            404,
        )

    @itinerary_bp.errorhandler(GeocodingTimeoutError)
    def handle_timeout(e):
        return _error(
            "Geocoding timeout",
            "The geocoding service took too long to respond. Please try again.",
            504,
        )

    @itinerary_bp.errorhandler(GeocodingError)
    def handle_geocoding_error(e):
        logger.error(f"Geocoding failed: {e}")
        return _error(
            "Geocoding failed",
            "An error occurred while geocoding the address. Please try again.",
            500,
        )

    @itinerary_bp.route("/api/days", methods=["GET", "PUT"])
    def api_days():
        """Read or replace the itinerary days."""
        if request.method == "PUT":
            data = _json_body()
            raw_days = data.get("days")
            if not isinstance(raw_days, list):
                raise ValueError("'days' must be a list")
            days = [DayItinerary.from_dict(day) for day in raw_days]
            days = ItineraryService.store_days(days)
        else:
            days = ItineraryService.get_days()
        return jsonify({"days": [day.to_dict() for day in days]})

    @itinerary_bp.route("/api/saved-locations", methods=["GET", "POST"])
    def api_saved_locations():
        """List or add saved locations."""
        if request.method == "POST":
            location = ItineraryService.add_saved_location(SavedLocation.from_dict(_json_body()))
            return jsonify({"location": location.to_dict()}), 201

        return jsonify({
            "locations": [loc.to_dict() for loc in ItineraryService.get_saved_locations()]
        })

    @itinerary_bp.route("/api/saved-locations/<location_id>", methods=["PUT", "DELETE"])
    def api_saved_location(location_id):
        """Edit or delete one saved location."""
        if request.method == "DELETE":
            removed = ItineraryService.delete_saved_location(location_id)
            return jsonify({"success": True, "removedItems": removed})

        data = _json_body()
        data["id"] = location_id
        location = ItineraryService.update_saved_location(SavedLocation.from_dict(data))
        return jsonify({"location": location.to_dict()})

    @itinerary_bp.route("/api/saved-locations/<location_id>/primary", methods=["POST"])
    def api_set_primary(location_id):
        location = ItineraryService.set_primary_location(location_id)
        return jsonify({"location": location.to_dict()})

    @itinerary_bp.route("/api/autofill", methods=["POST"])
    def api_autofill():
        days = ItineraryService.auto_fill_from_primary()
        return jsonify({"days": [day.to_dict() for day in days]})

    @itinerary_bp.route("/api/disconnections")
    def api_disconnections():
        """Report adjacent days whose boundary locations do not match."""
        reports = ItineraryService.check_connections()
        return jsonify({"disconnections": [report.to_dict() for report in reports]})

    @itinerary_bp.route("/api/sync", methods=["POST"])
    def api_sync():
        """Copy a boundary location across two adjacent days."""
        data = _json_body()
        day_number = data.get("dayNumber")
        if not isinstance(day_number, int) or isinstance(day_number, bool):
            raise ValueError("'dayNumber' must be an integer")

        previous_day, current_day = ItineraryService.sync_days(day_number, data.get("mode", "forward"))
        return jsonify({
            "previousDay": previous_day.to_dict(),
            "currentDay": current_day.to_dict(),
        })

    @itinerary_bp.route("/api/routes", methods=["POST"])
    def api_routes():
        """Recompute stale route caches."""
        config = get_itinerary_config()
        data = request.get_json(silent=True)
        mode = data.get("mode") if isinstance(data, dict) else None
        mode = mode or config["default_travel_mode"]
        if mode not in VALID_TRAVEL_MODES:
            raise ValueError(f"Invalid travel mode: {mode}")

        days = MapService.refresh_route_caches(
            ItineraryService.get_days(),
            mode=mode,
            max_age_days=config["route_cache_max_age_days"],
        )
        days = ItineraryService.store_days(days)
        return jsonify({
            "days": [day.to_dict() for day in days],
            "bounds": MapService.calculate_bounds(days),
        })

    @itinerary_bp.route("/api/stats")
    def api_stats():
        return jsonify(ItineraryService.get_stats().to_dict())

    @itinerary_bp.route("/api/geocode", methods=["POST"])
    def api_geocode():
        """Geocode an address, optionally biased to the city bounds."""
        data = _json_body()
        address = data.get("address")
        if not isinstance(address, str):
            raise ValueError("'address' must be a string")

        city_bounds = data.get("cityBounds")
        if city_bounds is not None:
            if not isinstance(city_bounds, dict) or any(
                not isinstance(city_bounds.get(k), (int, float)) for k in ("north", "south", "east", "west")
            ):
                raise ValueError("'cityBounds' needs numeric north, south, east and west")

        location = geocode(address, _client_id(), city_bounds)
        return jsonify({"success": True, "location": location.to_dict()})

    @itinerary_bp.route("/api/reverse-geocode", methods=["POST"])
    def api_reverse_geocode():
        """Convert coordinates to an address."""
        data = _json_body()
        lat, lon = data.get("lat"), data.get("lon")
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lat, lon)):
            raise ValueError("'lat' and 'lon' must be numbers")
        if not MapService.validate_coordinates(lat, lon):
            raise ValueError("Invalid coordinates")

        location = reverse_geocode(float(lat), float(lon), _client_id())
        return jsonify({"success": True, "location": location.to_dict()})

    @itinerary_bp.route("/api/session")
    def api_session():
        return jsonify(ItineraryService.get_session_info())

    @itinerary_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "itinerary"})

    return itinerary_bp


__all__ = ['create_itinerary_blueprint']
