from unittest.mock import MagicMock, patch

import pytest
from googlemaps import exceptions as gmaps_exceptions

from tripcalc.api import geocoding
from tripcalc.api.geocoding import (
    AddressNotFoundError,
    GeocodingError,
    GeocodingTimeoutError,
    RateLimitExceededError,
    cleanup_geocoding_cache,
    geocode,
    reverse_geocode,
)
from tripcalc.api.models import GeoLocation

PRADO_RESULT = {
    "formatted_address": "Museo del Prado, Madrid, Spain",
    "geometry": {"location": {"lat": 40.4138, "lng": -3.6921}},
    "place_id": "ChIJprado",
}


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.geocode.return_value = [PRADO_RESULT]
    client.reverse_geocode.return_value = [PRADO_RESULT]
    with patch("tripcalc.api.geocoding._get_client", return_value=client):
        yield client


def test_geocode_returns_geolocation(mock_client):
    location = geocode("Museo del Prado", "user-1")

    assert location == GeoLocation(
        lat=40.4138, lon=-3.6921, address="Museo del Prado, Madrid, Spain", place_id="ChIJprado",
    )
    mock_client.geocode.assert_called_once_with("Museo del Prado", language="en")


def test_geocode_passes_city_bounds(mock_client):
    bounds = {"north": 40.6, "south": 40.3, "east": -3.5, "west": -3.9}
    geocode("Museo del Prado", "user-1", bounds)

    _, kwargs = mock_client.geocode.call_args
    assert kwargs["bounds"] == {"northeast": (40.6, -3.5), "southwest": (40.3, -3.9)}


def test_geocode_uses_cache(mock_client):
    geocode("Museo del Prado", "user-1")
    geocode("  museo del prado ", "user-1")
    assert mock_client.geocode.call_count == 1


def test_geocode_rejects_short_address(mock_client):
    with pytest.raises(ValueError):
        geocode("ab", "user-1")
    mock_client.geocode.assert_not_called()


def test_geocode_not_found(mock_client):
    mock_client.geocode.return_value = []
    with pytest.raises(AddressNotFoundError):
        geocode("Nowhere at all", "user-1")


def test_geocode_timeout(mock_client):
    mock_client.geocode.side_effect = gmaps_exceptions.Timeout()
    with pytest.raises(GeocodingTimeoutError):
        geocode("Museo del Prado", "user-1")


def test_geocode_api_error(mock_client):
    mock_client.geocode.side_effect = gmaps_exceptions.ApiError("REQUEST_DENIED")
    with pytest.raises(GeocodingError):
        geocode("Museo del Prado", "user-1")


def test_geocode_rate_limit_is_per_user(mock_client, monkeypatch):
    monkeypatch.setenv("GEOCODING_RATE_LIMIT_PER_HOUR", "3")
    for i in range(3):
        geocode(f"Address number {i}", "user-1")

    with pytest.raises(RateLimitExceededError):
        geocode("One too many", "user-1")

    assert geocode("Another user", "user-2").place_id == "ChIJprado"


def test_reverse_geocode_keeps_requested_coordinates(mock_client):
    location = reverse_geocode(40.414, -3.692, "user-1")

    assert location.lat == 40.414
    assert location.lon == -3.692
    assert location.address == "Museo del Prado, Madrid, Spain"
    assert location.place_id == "ChIJprado"
    mock_client.reverse_geocode.assert_called_once_with((40.414, -3.692), language="en")


def test_reverse_geocode_uses_cache(mock_client):
    first = reverse_geocode(41.0, 2.0, "user-1")
    second = reverse_geocode(41.0000001, 2.0, "user-1")

    assert mock_client.reverse_geocode.call_count == 1
    assert second == first
    assert "reverse:41.000000,2.000000" in geocoding._geocoding_cache


def test_reverse_geocode_out_of_range(mock_client):
    with pytest.raises(ValueError):
        reverse_geocode(95, 0, "user-1")


def test_reverse_geocode_not_found(mock_client):
    mock_client.reverse_geocode.return_value = []
    with pytest.raises(AddressNotFoundError):
        reverse_geocode(0, 0, "user-1")


def test_cleanup_geocoding_cache_removes_expired_entries(mock_client):
    geocode("Museo del Prado", "user-1")

    with patch("tripcalc.api.geocoding.time.time", return_value=geocoding.time.time() + 31 * 24 * 3600):
        assert cleanup_geocoding_cache() == 1
    assert geocoding._geocoding_cache == {}


def test_missing_api_key_is_a_geocoding_error(monkeypatch):
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "")
    with pytest.raises(GeocodingError):
        geocoding._get_client()
