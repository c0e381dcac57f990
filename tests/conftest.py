import pytest

from tripcalc.api.geocoding import reset_geocoding_state
from tripcalc.api.models import DayItinerary, GeoLocation, ItineraryItem, SavedLocation, TimeSlot

MADRID = GeoLocation(lat=40.0, lon=-3.0, address="Madrid")
PARIS = GeoLocation(lat=48.8, lon=2.3, address="Paris")
HOTEL = GeoLocation(lat=41.3874, lon=2.1686, address="Hotel Barceló, Barcelona", place_id="hotel-1")


def make_item(item_id, category="ACTIVITIES", location=None, start_time=None, **kwargs):
    time_slot = TimeSlot(start_time=start_time) if start_time else None
    return ItineraryItem(
        id=item_id,
        name=kwargs.pop("name", item_id.title()),
        category=category,
        amount=kwargs.pop("amount", 1500),
        location=location,
        time_slot=time_slot,
        **kwargs,
    )


def make_day(day_number, *items, **kwargs):
    return DayItinerary(day_number=day_number, items=items, **kwargs)


@pytest.fixture
def hotel():
    return SavedLocation(
        id="loc-hotel",
        name="Hotel Barceló",
        category="ACCOMMODATION",
        location=HOTEL,
        is_primary=True,
        created_at="2024-02-01T10:00:00.000Z",
    )


@pytest.fixture
def second_hotel():
    return SavedLocation(
        id="loc-hostel",
        name="Sea Hostel",
        category="ACCOMMODATION",
        location=GeoLocation(lat=41.3809, lon=2.1899, address="Sea Hostel, Barcelona"),
        is_primary=False,
        created_at="2024-02-02T10:00:00.000Z",
    )


@pytest.fixture(autouse=True)
def clean_geocoding_state():
    reset_geocoding_state()
    yield
    reset_geocoding_state()


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("FLASK_SECRET_KEY", "test-secret")
    from main import create_app

    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()
