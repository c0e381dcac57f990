"""Shared data structures for itinerary planning.

Every record is a frozen dataclass so that the consistency helpers in
``autofill`` and ``migration`` can hand back new values with
``dataclasses.replace`` instead of editing what the caller passed in.
``to_dict`` / ``from_dict`` speak the camelCase JSON used by the front end
and by the stored calculator state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Itinerary item categories (shared with the cost calculator)
ACCOMMODATION = "ACCOMMODATION"
ITEM_CATEGORIES = ("ACCOMMODATION", "FOOD", "TRANSPORT", "ACTIVITIES", "SHOPPING", "OTHER")

# Saved location categories
LOCATION_CATEGORIES = ("ACCOMMODATION", "RESTAURANT", "LANDMARK", "TRANSPORT_HUB", "OTHER")
LOCATION_CATEGORY_ICONS = {
    "ACCOMMODATION": "🏨",
    "RESTAURANT": "🍽️",
    "LANDMARK": "📍",
    "TRANSPORT_HUB": "🚉",
    "OTHER": "📌",
}

ROUTE_MODES = ("walking", "transit", "cycling")


def new_id() -> str:
    """Return a fresh opaque identifier for items and saved locations."""
    return uuid.uuid4().hex


def isoformat_utc(moment: Optional[datetime] = None) -> str:
    """Format a datetime the way browsers do (``2024-02-15T09:30:00.000Z``)."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _number(data: Dict[str, Any], key: str, *fallbacks: str) -> float:
    for name in (key,) + fallbacks:
        if name in data and data[name] is not None:
            value = data[name]
            break
    else:
        raise ValueError(f"Missing required field '{key}'")
    if isinstance(value, bool):
        raise ValueError(f"Field '{key}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Field '{key}' must be a number") from None


def _category(value: Any, allowed: tuple, kind: str) -> str:
    category = str(value or "").strip().upper()
    if category not in allowed:
        raise ValueError(f"Invalid {kind} category: {value!r}")
    return category


def _require_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object")
    return data


@dataclass(frozen=True)
class GeoLocation:
    """A geocoded point with its display label."""

    lat: float
    lon: float
    address: str = ""
    place_id: Optional[str] = None  # geocoder's canonical id, if any

    def to_dict(self) -> dict:
        data = {"lat": self.lat, "lon": self.lon, "address": self.address}
        if self.place_id:
            data["placeId"] = self.place_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoLocation":
        data = _require_dict(data, "location")
        place_id = data.get("placeId")
        return cls(
            lat=_number(data, "lat"),
            lon=_number(data, "lon", "lng"),
            address=str(data.get("address") or ""),
            place_id=str(place_id) if place_id not in (None, "") else None,
        )


@dataclass(frozen=True)
class TimeSlot:
    start_time: Optional[str] = None  # "09:30" 24h
    end_time: Optional[str] = None
    duration: Optional[int] = None  # minutes

    def to_dict(self) -> dict:
        data = {}
        if self.start_time is not None:
            data["startTime"] = self.start_time
        if self.end_time is not None:
            data["endTime"] = self.end_time
        if self.duration is not None:
            data["duration"] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSlot":
        data = _require_dict(data, "timeSlot")
        duration = data.get("duration")
        return cls(
            start_time=data.get("startTime") or None,
            end_time=data.get("endTime") or None,
            duration=int(_number(data, "duration")) if duration is not None else None,
        )


@dataclass(frozen=True)
class ItineraryItem:
    """A single activity on a day plan.

    Auto-filled items are ordinary items carrying two tags:
    ``is_auto_filled`` and ``auto_fill_source`` (the id of the saved
    location that produced them). The source is looked up, never owned.
    """

    id: str
    name: str
    category: str = "OTHER"
    amount: int = 0  # cents
    visits: int = 1
    is_one_time: bool = False  # deprecated, kept for stored data
    notes: str = ""
    time_slot: Optional[TimeSlot] = None
    location: Optional[GeoLocation] = None
    booking_required: bool = False
    booking_url: str = ""
    is_ai_suggestion: bool = False
    is_auto_filled: bool = False
    auto_fill_source: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "category", str(self.category).upper())

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "amount": self.amount,
            "visits": self.visits,
            "isOneTime": self.is_one_time,
            "notes": self.notes,
            "bookingRequired": self.booking_required,
            "bookingUrl": self.booking_url,
            "isAISuggestion": self.is_ai_suggestion,
        }
        if self.time_slot is not None:
            data["timeSlot"] = self.time_slot.to_dict()
        if self.location is not None:
            data["location"] = self.location.to_dict()
        if self.is_auto_filled:
            data["isAutoFilled"] = True
            data["autoFillSource"] = self.auto_fill_source
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItineraryItem":
        data = _require_dict(data, "item")
        time_slot = data.get("timeSlot")
        location = data.get("location")
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data.get("name") or ""),
            category=_category(data.get("category"), ITEM_CATEGORIES, "item"),
            amount=int(round(_number(data, "amount"))) if data.get("amount") is not None else 0,
            visits=int(data.get("visits") or 1),
            is_one_time=bool(data.get("isOneTime", False)),
            notes=str(data.get("notes") or ""),
            time_slot=TimeSlot.from_dict(time_slot) if time_slot else None,
            location=GeoLocation.from_dict(location) if location else None,
            booking_required=bool(data.get("bookingRequired", False)),
            booking_url=str(data.get("bookingUrl") or ""),
            is_ai_suggestion=bool(data.get("isAISuggestion", False)),
            is_auto_filled=bool(data.get("isAutoFilled", False)),
            auto_fill_source=data.get("autoFillSource") or None,
        )


@dataclass(frozen=True)
class RouteSegment:
    from_id: str
    to_id: str
    distance: float  # meters
    duration: float  # minutes
    mode: str = "walking"
    geometry: Optional[str] = None  # encoded polyline

    def to_dict(self) -> dict:
        data = {
            "from": self.from_id,
            "to": self.to_id,
            "distance": self.distance,
            "duration": self.duration,
            "mode": self.mode,
        }
        if self.geometry:
            data["geometry"] = self.geometry
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteSegment":
        data = _require_dict(data, "segment")
        mode = str(data.get("mode") or "walking")
        if mode not in ROUTE_MODES:
            raise ValueError(f"Invalid route mode: {mode!r}")
        return cls(
            from_id=str(data.get("from") or ""),
            to_id=str(data.get("to") or ""),
            distance=_number(data, "distance"),
            duration=_number(data, "duration"),
            mode=mode,
            geometry=data.get("geometry") or None,
        )


@dataclass(frozen=True)
class RouteCache:
    """Derived travel summary of a day; never authoritative."""

    calculated_at: str  # ISO timestamp
    total_distance: float = 0.0  # meters
    total_duration: float = 0.0  # minutes
    segments: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "segments", tuple(self.segments))

    def to_dict(self) -> dict:
        return {
            "calculatedAt": self.calculated_at,
            "totalDistance": self.total_distance,
            "totalDuration": self.total_duration,
            "segments": [segment.to_dict() for segment in self.segments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteCache":
        data = _require_dict(data, "routeCache")
        return cls(
            calculated_at=str(data.get("calculatedAt") or ""),
            total_distance=float(data.get("totalDistance") or 0),
            total_duration=float(data.get("totalDuration") or 0),
            segments=tuple(RouteSegment.from_dict(s) for s in data.get("segments") or []),
        )


_DAY_KEYS = ("dayNumber", "customItems", "routeCache", "date", "dayName")


@dataclass(frozen=True)
class DayItinerary:
    """One day of a trip: an ordered sequence of items.

    ``extra`` holds the calculator's own day-plan keys (``included``,
    ``includeBase``, ...) so they survive a round trip untouched.
    """

    day_number: int
    items: tuple = ()
    route_cache: Optional[RouteCache] = None
    date: Optional[str] = None
    day_name: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data["dayNumber"] = self.day_number
        if self.date is not None:
            data["date"] = self.date
        if self.day_name is not None:
            data["dayName"] = self.day_name
        data["customItems"] = [item.to_dict() for item in self.items]
        if self.route_cache is not None:
            data["routeCache"] = self.route_cache.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DayItinerary":
        data = _require_dict(data, "day")
        items = data.get("customItems") or []
        if not isinstance(items, list):
            raise ValueError("customItems must be a list")
        route_cache = data.get("routeCache")
        return cls(
            day_number=int(_number(data, "dayNumber")),
            items=tuple(ItineraryItem.from_dict(item) for item in items),
            route_cache=RouteCache.from_dict(route_cache) if route_cache else None,
            date=data.get("date") or None,
            day_name=data.get("dayName") or None,
            extra={k: v for k, v in data.items() if k not in _DAY_KEYS},
        )


@dataclass(frozen=True)
class SavedLocation:
    """A named point the traveler reuses across the itinerary."""

    id: str
    name: str
    category: str
    location: GeoLocation
    is_primary: bool = False
    icon: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = ""

    @property
    def display_icon(self) -> str:
        return self.icon or LOCATION_CATEGORY_ICONS.get(self.category, LOCATION_CATEGORY_ICONS["OTHER"])

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "location": self.location.to_dict(),
            "isPrimary": self.is_primary,
            "createdAt": self.created_at,
        }
        if self.icon:
            data["icon"] = self.icon
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedLocation":
        data = _require_dict(data, "saved location")
        name = str(data.get("name") or "").strip()
        if not name or len(name) > 100:
            raise ValueError("Saved location name must be 1-100 characters")
        icon = data.get("icon") or None
        if icon is not None and len(icon) > 4:
            raise ValueError("Saved location icon is too long")
        notes = data.get("notes") or None
        if notes is not None and len(notes) > 500:
            raise ValueError("Saved location notes are too long")
        if not data.get("location"):
            raise ValueError("Saved location requires a location")
        return cls(
            id=str(data.get("id") or new_id()),
            name=name,
            category=_category(data.get("category"), LOCATION_CATEGORIES, "location"),
            location=GeoLocation.from_dict(data["location"]),
            is_primary=bool(data.get("isPrimary", False)),
            icon=icon,
            notes=notes,
            created_at=str(data.get("createdAt") or isoformat_utc()),
        )


@dataclass(frozen=True)
class DisconnectionReport:
    """A gap between the end of one day and the start of the next."""

    day_number: int  # the later day of the pair
    last_location: str
    next_location: str

    def to_dict(self) -> dict:
        return {
            "dayNumber": self.day_number,
            "lastLocation": self.last_location,
            "nextLocation": self.next_location,
        }


@dataclass(frozen=True)
class ItineraryStats:
    total_activities: int = 0
    activities_with_time: int = 0
    activities_with_location: int = 0
    activities_with_booking: int = 0
    ai_suggestions: int = 0
    days_with_itinerary: int = 0
    average_activities_per_day: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalActivities": self.total_activities,
            "activitiesWithTime": self.activities_with_time,
            "activitiesWithLocation": self.activities_with_location,
            "activitiesWithBooking": self.activities_with_booking,
            "aiSuggestions": self.ai_suggestions,
            "daysWithItinerary": self.days_with_itinerary,
            "averageActivitiesPerDay": self.average_activities_per_day,
        }
