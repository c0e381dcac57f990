from dataclasses import replace
from unittest.mock import patch

import pytest

from tripcalc.api.autofill import (
    auto_fill_all_days,
    auto_fill_day_accommodation,
    count_auto_filled_items,
    create_accommodation_item,
    detect_disconnected_days,
    has_accommodation_at,
    locations_match,
    remove_auto_filled_items,
    sync_consecutive_days,
    update_auto_filled_items,
)
from tripcalc.api.models import GeoLocation, RouteCache
from conftest import HOTEL, MADRID, PARIS, make_day, make_item

# 40 m and 60 m east of (0, 0) along the equator
FORTY_METERS_EAST = GeoLocation(lat=0.0, lon=0.00035973, address="40 m away")
SIXTY_METERS_EAST = GeoLocation(lat=0.0, lon=0.00053959, address="60 m away")
ORIGIN = GeoLocation(lat=0.0, lon=0.0, address="Origin")


###############################################################
# Location matcher
###############################################################

def test_locations_match_absent_locations():
    assert locations_match(None, MADRID) is False
    assert locations_match(MADRID, None) is False
    assert locations_match(None, None) is False


def test_locations_match_place_id_overrides_geometry():
    a = replace(MADRID, place_id="same-place")
    b = replace(PARIS, place_id="same-place")
    with patch("tripcalc.api.autofill.calculate_distance") as distance:
        assert locations_match(a, b) is True
        distance.assert_not_called()


def test_locations_match_different_place_ids_fall_back_to_distance():
    a = replace(ORIGIN, place_id="a")
    b = replace(FORTY_METERS_EAST, place_id="b")
    assert locations_match(a, b) is True


def test_locations_match_empty_place_id_is_ignored():
    a = replace(MADRID, place_id="")
    b = replace(PARIS, place_id="")
    assert locations_match(a, b) is False


def test_locations_match_within_tolerance():
    assert locations_match(ORIGIN, FORTY_METERS_EAST) is True
    assert locations_match(ORIGIN, SIXTY_METERS_EAST) is False


@pytest.mark.parametrize("distance, expected", [(50.0, True), (50.0001, False)])
def test_locations_match_tolerance_boundary(distance, expected):
    with patch("tripcalc.api.autofill.calculate_distance", return_value=distance):
        assert locations_match(MADRID, PARIS) is expected


###############################################################
# Accommodation auto-fill
###############################################################

def test_has_accommodation_at_empty_day():
    assert has_accommodation_at([], "start") is False
    assert has_accommodation_at([], "end") is False


def test_has_accommodation_at_checks_the_right_end():
    items = [make_item("hotel", "ACCOMMODATION"), make_item("museum")]
    assert has_accommodation_at(items, "start") is True
    assert has_accommodation_at(items, "end") is False


def test_has_accommodation_at_accepts_lowercase_category():
    assert has_accommodation_at([make_item("hotel", "accommodation")], "end") is True


def test_create_accommodation_item(hotel):
    item = create_accommodation_item("Check-in", hotel, "18:00")

    assert item.name == "Check-in"
    assert item.category == "ACCOMMODATION"
    assert item.amount == 0
    assert item.visits == 1
    assert item.time_slot.start_time == "18:00"
    assert item.time_slot.end_time is None
    assert item.location == HOTEL
    assert item.is_auto_filled is True
    assert item.auto_fill_source == hotel.id
    assert item.id


def test_create_accommodation_item_ids_are_unique(hotel):
    first = create_accommodation_item("Check-in", hotel, "18:00")
    second = create_accommodation_item("Check-in", hotel, "18:00")
    assert first.id != second.id


def test_auto_fill_empty_day_gets_both_bookends(hotel):
    day = auto_fill_day_accommodation(make_day(1), hotel)

    assert [item.name for item in day.items] == ["Check-out", "Check-in"]
    assert [item.time_slot.start_time for item in day.items] == ["09:00", "18:00"]


def test_auto_fill_wraps_existing_items(hotel):
    original = make_day(1, make_item("museum"), make_item("dinner", "FOOD"))
    day = auto_fill_day_accommodation(original, hotel)

    assert [item.name for item in day.items] == ["Check-out", "Museum", "Dinner", "Check-in"]
    assert len(original.items) == 2


def test_auto_fill_respects_manual_accommodation_at_start(hotel):
    manual = make_item("my-hotel", "ACCOMMODATION", name="My hotel")
    day = auto_fill_day_accommodation(make_day(1, manual, make_item("museum")), hotel)

    assert day.items[0] is manual
    assert [item.name for item in day.items] == ["My hotel", "Museum", "Check-in"]


def test_auto_fill_respects_manual_accommodation_at_end(hotel):
    manual = make_item("my-hotel", "ACCOMMODATION", name="My hotel")
    day = auto_fill_day_accommodation(make_day(1, make_item("museum"), manual), hotel)

    assert [item.name for item in day.items] == ["Check-out", "Museum", "My hotel"]


def test_auto_fill_is_idempotent(hotel):
    once = auto_fill_day_accommodation(make_day(1, make_item("museum")), hotel)
    twice = auto_fill_day_accommodation(once, hotel)

    assert twice == once


def test_auto_fill_drops_route_cache_when_items_change(hotel):
    cache = RouteCache(calculated_at="2024-02-15T09:30:00.000Z")
    day = auto_fill_day_accommodation(make_day(1, make_item("museum"), route_cache=cache), hotel)
    assert day.route_cache is None


def test_auto_fill_keeps_route_cache_when_nothing_changes(hotel):
    cache = RouteCache(calculated_at="2024-02-15T09:30:00.000Z")
    bookend = make_item("my-hotel", "ACCOMMODATION")
    day = make_day(1, bookend, route_cache=cache)

    assert auto_fill_day_accommodation(day, hotel) is day


def test_auto_fill_all_days(hotel):
    days = [make_day(1), make_day(2, make_item("museum")), make_day(3)]
    filled = auto_fill_all_days(days, hotel)

    assert [len(day.items) for day in filled] == [2, 3, 2]
    assert [day.day_number for day in filled] == [1, 2, 3]


def test_auto_fill_all_days_with_empty_day_between_busy_days(hotel):
    days = [
        make_day(1, make_item("museum")),
        make_day(2),
        make_day(3, make_item("dinner", "FOOD")),
    ]
    filled = auto_fill_all_days(days, hotel)

    assert [[item.name for item in day.items] for day in filled] == [
        ["Check-out", "Museum", "Check-in"],
        ["Check-out", "Check-in"],
        ["Check-out", "Dinner", "Check-in"],
    ]
    assert count_auto_filled_items(filled, hotel.id) == 6


def test_auto_fill_judges_both_ends_on_original_items(hotel):
    only_hotel = make_day(1, make_item("my-hotel", "ACCOMMODATION"))
    ends_at_hotel = make_day(2, make_item("museum"), make_item("my-hotel", "ACCOMMODATION"))

    assert auto_fill_day_accommodation(only_hotel, hotel) is only_hotel
    filled = auto_fill_day_accommodation(ends_at_hotel, hotel)
    assert [item.name for item in filled.items] == ["Check-out", "Museum", "My-Hotel"]


###############################################################
# Removal / update when a saved location changes
###############################################################

def test_remove_auto_filled_items_only_touches_matching_source(hotel, second_hotel):
    manual = make_item("museum")
    other = create_accommodation_item("Check-in", second_hotel, "18:00")
    days = [
        auto_fill_day_accommodation(make_day(1, manual), hotel),
        make_day(2, make_item("lunch", "FOOD"), other),
    ]

    cleaned = remove_auto_filled_items(days, hotel.id)

    assert cleaned[0].items == (manual,)
    assert cleaned[1] is days[1]
    assert count_auto_filled_items(cleaned, hotel.id) == 0
    assert count_auto_filled_items(cleaned, second_hotel.id) == 1


def test_remove_auto_filled_items_keeps_manual_item_with_same_source_id(hotel):
    manual = make_item("note", auto_fill_source=hotel.id)
    cleaned = remove_auto_filled_items([make_day(1, manual)], hotel.id)
    assert cleaned[0].items == (manual,)


def test_update_auto_filled_items_repoints_location(hotel, second_hotel):
    days = auto_fill_all_days([make_day(1, make_item("museum")), make_day(2)], hotel)

    updated = update_auto_filled_items(days, hotel.id, second_hotel)

    for before, after in zip(days, updated):
        for old_item, new_item in zip(before.items, after.items):
            if old_item.is_auto_filled:
                assert new_item.location == second_hotel.location
                assert new_item.auto_fill_source == second_hotel.id
                assert new_item.name == old_item.name
                assert new_item.time_slot == old_item.time_slot
                assert new_item.id == old_item.id
            else:
                assert new_item is old_item
    assert count_auto_filled_items(updated, hotel.id) == 0
    assert count_auto_filled_items(updated, second_hotel.id) == 4


def test_count_auto_filled_items(hotel):
    days = auto_fill_all_days([make_day(1), make_day(2), make_day(3)], hotel)
    assert count_auto_filled_items(days, hotel.id) == 6
    assert count_auto_filled_items(days, "unknown") == 0


###############################################################
# Cross-day synchronisation
###############################################################

def test_sync_forward_copies_last_location_to_next_day():
    previous = make_day(1, make_item("museum", location=PARIS), make_item("bar", location=MADRID))
    current = make_day(2, make_item("breakfast", "FOOD", location=PARIS, start_time="08:00"))

    new_previous, new_current = sync_consecutive_days(previous, current, "forward")

    assert new_current.items[0].location == MADRID
    assert new_current.items[0].name == "Breakfast"
    assert new_current.items[0].time_slot.start_time == "08:00"
    assert new_previous == previous
    assert current.items[0].location == PARIS


def test_sync_forward_fills_missing_location():
    previous = make_day(1, make_item("bar", location=MADRID))
    current = make_day(2, make_item("breakfast", "FOOD"))

    _, new_current = sync_consecutive_days(previous, current, "forward")
    assert new_current.items[0].location == MADRID


def test_sync_backward_copies_first_location_to_previous_day():
    previous = make_day(1, make_item("museum", location=PARIS), make_item("bar", location=MADRID))
    current = make_day(2, make_item("breakfast", "FOOD", location=PARIS))

    new_previous, new_current = sync_consecutive_days(previous, current, "backward")

    assert new_previous.items[-1].location == PARIS
    assert new_previous.items[-1].name == "Bar"
    assert new_previous.items[0] == previous.items[0]
    assert new_current == current


@pytest.mark.parametrize("mode", ["forward", "backward"])
def test_sync_is_a_no_op_without_source_or_target(mode):
    empty = make_day(1)
    no_location = make_day(2, make_item("walk"))

    assert sync_consecutive_days(empty, no_location, mode) == (empty, no_location)
    assert sync_consecutive_days(no_location, empty, mode) == (no_location, empty)


def test_sync_invalidates_route_cache_of_changed_day():
    cache = RouteCache(calculated_at="2024-02-15T09:30:00.000Z")
    previous = make_day(1, make_item("bar", location=MADRID), route_cache=cache)
    current = make_day(2, make_item("breakfast", location=PARIS), route_cache=cache)

    new_previous, new_current = sync_consecutive_days(previous, current, "forward")
    assert new_previous.route_cache == cache
    assert new_current.route_cache is None


###############################################################
# Disconnection detection
###############################################################

def test_detect_disconnected_days_reports_gap():
    days = [
        make_day(1, make_item("museum"), make_item("bar", location=MADRID)),
        make_day(2, make_item("cafe", location=PARIS)),
    ]

    reports = detect_disconnected_days(days)

    assert len(reports) == 1
    assert reports[0].day_number == 2
    assert reports[0].last_location == "Madrid"
    assert reports[0].next_location == "Paris"


def test_detect_disconnected_days_same_coordinates_are_connected():
    same_spot = GeoLocation(lat=40.0, lon=-3.0, address="Madrid (hotel)")
    days = [
        make_day(1, make_item("bar", location=MADRID)),
        make_day(2, make_item("cafe", location=same_spot)),
    ]
    assert detect_disconnected_days(days) == []


def test_detect_disconnected_days_skips_empty_days_and_missing_locations():
    days = [
        make_day(1, make_item("bar", location=MADRID)),
        make_day(2),
        make_day(3, make_item("cafe", location=PARIS)),
        make_day(4, make_item("walk")),
    ]
    assert detect_disconnected_days(days) == []


def test_detect_disconnected_days_follows_day_order():
    days = [
        make_day(1, make_item("a", location=MADRID)),
        make_day(2, make_item("b", location=PARIS)),
        make_day(3, make_item("c", location=MADRID)),
    ]
    assert [report.day_number for report in detect_disconnected_days(days)] == [2, 3]


def test_detect_disconnected_days_after_sync_is_clean():
    days = [
        make_day(1, make_item("bar", location=MADRID)),
        make_day(2, make_item("cafe", location=PARIS)),
    ]
    days[0], days[1] = sync_consecutive_days(days[0], days[1], "forward")
    assert detect_disconnected_days(days) == []


def test_detect_disconnected_days_handles_short_itineraries():
    assert detect_disconnected_days([]) == []
    assert detect_disconnected_days([make_day(1, make_item("a", location=MADRID))]) == []
