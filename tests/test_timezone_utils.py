"""Tests for local wall-clock <-> UTC conversion and flight-day zone resolution."""

from datetime import datetime, timezone

import pytest

from conftest import at
from trip_timeline.api.timezone_utils import (
    DayTimezoneInfo,
    FlightTzInfo,
    InvalidTimezone,
    available_timezone_names,
    build_day_timezone_map,
    get_date_in_timezone,
    get_hour_in_timezone,
    get_utc_offset_hours_diff,
    get_utc_offset_minutes,
    is_valid_timezone,
    local_to_utc,
    resolve_drop_tz,
    resolve_entry_tz,
    utc_to_local,
    wall_clock_hours,
)


def test_london_summer_round_trip():
    instant = local_to_utc("2024-06-15", "14:30", "Europe/London")
    assert instant == datetime(2024, 6, 15, 13, 30, tzinfo=timezone.utc)
    assert utc_to_local(instant, "Europe/London") == ("2024-06-15", "14:30")


def test_london_winter_has_no_offset():
    instant = local_to_utc("2024-01-15", "14:30", "Europe/London")
    assert instant == datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)


def test_negative_offset_crosses_midnight():
    instant = local_to_utc("2024-06-15", "22:00", "America/New_York")
    assert instant == datetime(2024, 6, 16, 2, 0, tzinfo=timezone.utc)
    assert utc_to_local(instant, "America/New_York") == ("2024-06-15", "22:00")


def test_half_hour_zone():
    instant = local_to_utc("2024-06-15", "09:00", "Asia/Kolkata")
    assert instant == datetime(2024, 6, 15, 3, 30, tzinfo=timezone.utc)


def test_seconds_are_accepted():
    instant = local_to_utc("2024-06-15", "14:30:45", "UTC")
    assert instant == datetime(2024, 6, 15, 14, 30, 45, tzinfo=timezone.utc)


def test_spring_forward_gap_is_deterministic():
    # 01:30 does not exist in London on 2024-03-31.
    first = local_to_utc("2024-03-31", "01:30", "Europe/London")
    second = local_to_utc("2024-03-31", "01:30", "Europe/London")
    assert first == second
    assert utc_to_local(first, "Europe/London") == ("2024-03-31", "02:30")


@pytest.mark.parametrize("tz, date_str, time_str", [
    # Spring forward, west of UTC
    ("America/New_York", "2024-03-10", "01:59"),
    ("America/New_York", "2024-03-10", "03:00"),
    ("America/New_York", "2024-03-10", "03:30"),
    ("America/New_York", "2024-03-10", "05:00"),
    ("America/Los_Angeles", "2024-03-10", "03:15"),
    # Fall back, west of UTC
    ("America/New_York", "2024-11-03", "00:30"),
    ("America/New_York", "2024-11-03", "02:30"),
    ("America/New_York", "2024-11-03", "04:00"),
    # Spring forward, east of UTC
    ("Europe/Berlin", "2024-03-31", "00:30"),
    ("Europe/Berlin", "2024-03-31", "01:30"),
    ("Europe/Berlin", "2024-03-31", "03:00"),
    ("Europe/Berlin", "2024-03-31", "03:30"),
    ("Europe/London", "2024-03-31", "02:00"),
    # Fall back, east of UTC
    ("Europe/Berlin", "2024-10-27", "00:30"),
    ("Europe/Berlin", "2024-10-27", "03:30"),
    # Southern hemisphere
    ("Australia/Sydney", "2024-10-06", "01:30"),
    ("Australia/Sydney", "2024-10-06", "03:30"),
    ("Australia/Sydney", "2024-04-07", "03:30"),
    ("Pacific/Auckland", "2024-09-29", "01:30"),
    ("Pacific/Auckland", "2024-09-29", "03:30"),
])
def test_times_next_to_transitions_round_trip(tz, date_str, time_str):
    instant = local_to_utc(date_str, time_str, tz)
    assert utc_to_local(instant, tz) == (date_str, time_str)


def test_times_after_spring_forward_use_summer_offset():
    assert local_to_utc("2024-03-10", "03:30", "America/New_York") == at("07:30", "2024-03-10")
    assert local_to_utc("2024-03-31", "01:30", "Europe/Berlin") == at("00:30", "2024-03-31")


def test_fall_back_ambiguous_time_round_trips():
    instant = local_to_utc("2024-10-27", "01:30", "Europe/London")
    assert utc_to_local(instant, "Europe/London") == ("2024-10-27", "01:30")


def test_invalid_zone_raises():
    with pytest.raises(InvalidTimezone):
        local_to_utc("2024-06-15", "10:00", "Mars/Olympus_Mons")
    with pytest.raises(ValueError):
        utc_to_local(at("10:00"), "Not/AZone")


def test_utc_to_local_accepts_iso_strings():
    assert utc_to_local("2024-06-15T13:30:00Z", "Europe/London") == ("2024-06-15", "14:30")


def test_date_and_hour_in_timezone():
    assert get_date_in_timezone("2024-06-15T23:30:00Z", "Asia/Tokyo") == "2024-06-16"
    assert get_hour_in_timezone("2024-06-15T13:30:00Z", "Europe/London") == 14.5


def test_offsets():
    assert get_utc_offset_minutes(at("12:00"), "Europe/London") == 60
    assert get_utc_offset_minutes(at("12:00"), "Asia/Kolkata") == 330
    assert get_utc_offset_minutes(at("12:00"), "America/New_York") == -240
    assert get_utc_offset_hours_diff("Europe/London", "Europe/Amsterdam", at=at("12:00")) == 1
    assert get_utc_offset_hours_diff("Europe/London", "Nowhere/City", at=at("12:00")) == 0


def test_zone_validation():
    assert is_valid_timezone("Europe/London")
    assert not is_valid_timezone("Europe/Atlantis")
    assert not is_valid_timezone("")
    names = available_timezone_names()
    assert "Europe/London" in names
    assert list(names) == sorted(names)


def test_flight_uses_departure_and_arrival_zones(make_entry):
    flight = make_entry("fl", "09:00", "11:00", category="flight")
    flight.options[0].departure_tz = "Europe/London"
    flight.options[0].arrival_tz = "Europe/Paris"
    assert resolve_entry_tz(flight, [], None, "UTC") == ("Europe/London", "Europe/Paris")


def test_entries_switch_zone_after_first_flight_lands(make_entry):
    flights = [FlightTzInfo("Europe/London", "Asia/Tokyo", 9.0, 21.0, flight_end_utc=at("12:00"))]
    before = make_entry("breakfast", "07:00", "08:00")
    after = make_entry("dinner", "13:00", "14:00")
    assert resolve_entry_tz(before, flights, None, "UTC") == ("Europe/London", "Europe/London")
    assert resolve_entry_tz(after, flights, None, "UTC") == ("Asia/Tokyo", "Asia/Tokyo")


def test_entries_without_flights_use_active_zone(make_entry):
    entry = make_entry("museum", "10:00", "12:00")
    assert resolve_entry_tz(entry, [], "Europe/Rome", "UTC") == ("Europe/Rome", "Europe/Rome")
    assert resolve_entry_tz(entry, [], None, "UTC") == ("UTC", "UTC")


def test_day_zones_follow_the_flights(make_entry):
    entries = [
        make_entry("museum", "09:00", "11:00", date="2024-06-14"),
        make_entry("flight", "10:00", "23:59", date="2024-06-15", category="flight",
                   departure_tz="Europe/London", arrival_tz="Asia/Tokyo"),
        make_entry("idea", "10:00", "11:00", date="2024-06-20", category="flight",
                   departure_tz="Asia/Tokyo", arrival_tz="Europe/Paris", scheduled=False),
    ]

    tz_map = build_day_timezone_map(entries, ["2024-06-14", "2024-06-15", "2024-06-16"], "UTC")

    assert tz_map["2024-06-14"].active_tz == "Europe/London"
    assert tz_map["2024-06-14"].flights == []
    flight_day = tz_map["2024-06-15"]
    assert flight_day.active_tz == "Asia/Tokyo"
    assert [(f.origin_tz, f.destination_tz) for f in flight_day.flights] == [("Europe/London", "Asia/Tokyo")]
    assert flight_day.flights[0].flight_start_hour == 11.0
    assert flight_day.to_dict()["flights"][0]["offset_hours"] == 8
    assert tz_map["2024-06-16"].active_tz == "Asia/Tokyo"


def test_day_zones_without_flights_use_home_zone(make_entry):
    tz_map = build_day_timezone_map([make_entry("a", "09:00", "10:00")], ["2024-06-15"], "Europe/Rome")
    assert tz_map == {"2024-06-15": DayTimezoneInfo("Europe/Rome")}


def test_wall_clock_hours():
    assert wall_clock_hours("14:30") == 14.5
    assert wall_clock_hours("07:15:00") == 7.25


def test_drop_zone_follows_last_flight():
    info = DayTimezoneInfo(
        active_tz="Europe/London",
        flights=[
            FlightTzInfo("Europe/London", "Europe/Paris", 8.0, 10.0),
            FlightTzInfo("Europe/Paris", "Europe/Rome", 14.0, 16.0),
        ],
    )
    assert resolve_drop_tz(15.0, info, "UTC") == "Europe/Paris"
    assert resolve_drop_tz(16.0, info, "UTC") == "Europe/Rome"
    assert resolve_drop_tz(9.0, DayTimezoneInfo("Asia/Seoul"), "UTC") == "Asia/Seoul"
    assert resolve_drop_tz(9.0, None, "UTC") == "UTC"
