# trip_timeline/api/timezone_utils.py
"""Timezone conversion utilities.

Entries are stored as UTC instants; the trip is planned in local wall-clock
time. These helpers are the single place where the two meet.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

from trip_timeline.api.models import FLIGHT_CATEGORY, Entry, format_instant, parse_instant

logger = logging.getLogger(__name__)

Instant = Union[datetime, str]


class InvalidTimezone(ValueError):
    """Raised when a zone identifier is not a known IANA zone."""


@dataclass
class FlightTzInfo:
    """Where a day's flight departs from and lands, in zone and grid terms."""

    origin_tz: str
    destination_tz: str
    flight_start_hour: float
    flight_end_hour: float
    flight_end_utc: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "origin_tz": self.origin_tz,
            "destination_tz": self.destination_tz,
            "flight_start_hour": self.flight_start_hour,
            "flight_end_hour": self.flight_end_hour,
            "flight_end_utc": format_instant(self.flight_end_utc) if self.flight_end_utc else None,
            "offset_hours": get_utc_offset_hours_diff(self.origin_tz, self.destination_tz,
                                                      at=self.flight_end_utc),
        }


@dataclass
class DayTimezoneInfo:
    active_tz: str
    flights: List[FlightTzInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "active_tz": self.active_tz,
            "flights": [f.to_dict() for f in self.flights],
        }


def _get_zone(tz: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise InvalidTimezone(f"Invalid timezone identifier: {tz!r}") from exc


@lru_cache(maxsize=1)
def available_timezone_names() -> Tuple[str, ...]:
    """All IANA zone names known to this interpreter, sorted."""
    return tuple(sorted(available_timezones()))


def is_valid_timezone(tz: str) -> bool:
    try:
        _get_zone(tz)
    except InvalidTimezone:
        return False
    return True


def _parse_wall_clock(date_str: str, time_str: str) -> datetime:
    fmt = "%Y-%m-%d %H:%M:%S" if time_str.count(":") == 2 else "%Y-%m-%d %H:%M"
    return datetime.strptime(f"{date_str} {time_str}", fmt)


# ─── Core UTC ↔ local conversions ─────────────────────────────────────────────

def local_to_utc(date_str: str, time_str: str, tz: str) -> datetime:
    """Interpret ``date_str``/``time_str`` as wall-clock time in ``tz``.

    The offset is probed rather than looked up: the naive wall-clock is
    rendered in ``tz`` as though it were already UTC, and the difference
    between the two readings is the offset to subtract. When a transition
    lies between the probe and the resulting instant, the offset is probed
    again at that instant. Wall-clock times that fall inside a
    spring-forward gap do not exist; they still map to a deterministic
    instant, but it will not round-trip.
    """
    zone = _get_zone(tz)
    naive = _parse_wall_clock(date_str, time_str)
    probe = naive.replace(tzinfo=timezone.utc)
    offset = _offset_at(probe, zone)
    candidate = probe - offset
    second = _offset_at(candidate, zone)
    if second != offset:
        return probe - second
    return candidate


def _offset_at(instant: datetime, zone: ZoneInfo) -> timedelta:
    rendered = instant.astimezone(zone).replace(tzinfo=None)
    return rendered - instant.replace(tzinfo=None)


def utc_to_local(instant: Instant, tz: str) -> Tuple[str, str]:
    """Return ``(YYYY-MM-DD, HH:MM)`` for ``instant`` as seen in ``tz``."""
    zone = _get_zone(tz)
    local = parse_instant(instant).astimezone(zone)
    return local.strftime("%Y-%m-%d"), local.strftime("%H:%M")


def get_date_in_timezone(instant: Instant, tz: str) -> str:
    return utc_to_local(instant, tz)[0]


def get_hour_in_timezone(instant: Instant, tz: str) -> float:
    """Fractional hour of ``instant`` in ``tz`` (14:30 -> 14.5)."""
    local = parse_instant(instant).astimezone(_get_zone(tz))
    return local.hour + local.minute / 60


# ─── Offsets ──────────────────────────────────────────────────────────────────

def get_utc_offset_minutes(instant: Instant, tz: str) -> int:
    local = parse_instant(instant).astimezone(_get_zone(tz))
    return int(local.utcoffset().total_seconds() // 60)


def get_utc_offset_hours_diff(origin_tz: str, dest_tz: str,
                              at: Optional[Instant] = None) -> float:
    """Hours between two zones' UTC offsets at ``at`` (default: now).

    Unknown zones give 0 rather than raising.
    """
    when = parse_instant(at) if at is not None else datetime.now(timezone.utc)
    try:
        origin = get_utc_offset_minutes(when, origin_tz)
        dest = get_utc_offset_minutes(when, dest_tz)
    except InvalidTimezone as e:
        logger.warning(f"Offset difference unavailable: {e}")
        return 0
    return (dest - origin) / 60


# ─── Entry timezone resolution ────────────────────────────────────────────────

def resolve_entry_tz(entry: Entry, day_flights: List[FlightTzInfo],
                     active_tz: Optional[str], trip_tz: str) -> Tuple[str, str]:
    """Return ``(start_tz, end_tz)`` used to position ``entry`` on the grid.

    Flights start in their departure zone and end in their arrival zone.
    Anything else on a flight day sits in the origin zone until the first
    flight has landed and in the destination zone afterwards.
    """
    opt = entry.primary_option
    if opt and opt.category == FLIGHT_CATEGORY and opt.departure_tz and opt.arrival_tz:
        return opt.departure_tz, opt.arrival_tz

    tz = active_tz or trip_tz
    if day_flights and day_flights[0].flight_end_utc is not None:
        first = day_flights[0]
        landed = entry.start_time >= parse_instant(first.flight_end_utc)
        tz = first.destination_tz if landed else first.origin_tz
    return tz, tz


def resolve_drop_tz(hour_offset: float, tz_info: Optional[DayTimezoneInfo],
                    trip_tz: str) -> str:
    """Zone for a wall-clock slot being dropped onto; the last flight sets the boundary."""
    if tz_info is None or not tz_info.flights:
        return tz_info.active_tz if tz_info and tz_info.active_tz else trip_tz
    last_flight = tz_info.flights[-1]
    if hour_offset >= last_flight.flight_end_hour:
        return last_flight.destination_tz
    return last_flight.origin_tz


def wall_clock_hours(time_str: str) -> float:
    """``"14:30"`` -> 14.5"""
    parts = time_str.split(":")
    return int(parts[0]) + int(parts[1]) / 60


def _is_zoned_flight(entry: Entry) -> bool:
    opt = entry.primary_option
    return bool(opt and opt.category == FLIGHT_CATEGORY and opt.departure_tz and opt.arrival_tz)


def build_day_timezone_map(entries: Iterable[Entry], days: Iterable[str],
                           home_tz: str) -> Dict[str, DayTimezoneInfo]:
    """Work out which zone each trip day is lived in by following the flights.

    The trip starts in the first flight's departure zone (``home_tz`` when
    there are no flights). A day with flights is active in its last flight's
    arrival zone, and later days stay there until the next flight.
    """
    scheduled = sorted((e for e in entries if e.is_scheduled), key=lambda e: e.start_time)
    flights = [e for e in scheduled if _is_zoned_flight(e)]
    current = flights[0].primary_option.departure_tz if flights else home_tz

    tz_map: Dict[str, DayTimezoneInfo] = {}
    for day in days:
        day_flights = [f for f in flights if get_date_in_timezone(f.start_time, current) == day]
        if not day_flights:
            tz_map[day] = DayTimezoneInfo(active_tz=current)
            continue

        infos = []
        for flight in day_flights:
            opt = flight.primary_option
            start_hour = get_hour_in_timezone(flight.start_time, opt.departure_tz)
            infos.append(FlightTzInfo(
                origin_tz=opt.departure_tz,
                destination_tz=opt.arrival_tz,
                flight_start_hour=start_hour,
                flight_end_hour=start_hour + flight.duration_minutes / 60,
                flight_end_utc=flight.end_time,
            ))
        current = day_flights[-1].primary_option.arrival_tz
        tz_map[day] = DayTimezoneInfo(active_tz=current, flights=infos)

    logger.debug(f"Resolved zones for {len(tz_map)} days ({len(flights)} flights)")
    return tz_map


__all__ = [
    "InvalidTimezone",
    "FlightTzInfo",
    "DayTimezoneInfo",
    "available_timezone_names",
    "is_valid_timezone",
    "local_to_utc",
    "utc_to_local",
    "get_date_in_timezone",
    "get_hour_in_timezone",
    "get_utc_offset_minutes",
    "get_utc_offset_hours_diff",
    "resolve_entry_tz",
    "resolve_drop_tz",
    "wall_clock_hours",
    "build_day_timezone_map",
]
