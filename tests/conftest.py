import asyncio
from datetime import datetime, timezone

import pytest

from trip_timeline.api.models import Entry, EntryOption


def at(hhmm: str, date: str = "2024-06-15") -> datetime:
    """UTC instant for ``hhmm`` on ``date``."""
    return datetime.fromisoformat(f"{date}T{hhmm}:00").replace(tzinfo=timezone.utc)


class FakeProvider:
    """Travel-time provider answering from a table keyed by (origin, destination)."""

    def __init__(self, durations=None, default=None, delay=0.0, fail_for=()):
        self.durations = durations or {}
        self.default = default
        self.delay = delay
        self.fail_for = set(fail_for)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_travel_time(self, origin, destination, mode="transit"):
        self.calls.append((origin, destination, mode))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if origin in self.fail_for or destination in self.fail_for:
                raise RuntimeError("directions backend unavailable")
            minutes = self.durations.get((origin, destination), self.default)
            if minutes is None:
                return None
            return {"duration_min": minutes, "distance_km": 1.5}
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_entry():
    def _make(entry_id, start, end, date="2024-06-15", location=None, category=None,
              locked=False, scheduled=True, lat=None, lng=None, name=None,
              departure_location=None, arrival_location=None, departure_tz=None, arrival_tz=None):
        option = EntryOption(
            id=f"opt-{entry_id}",
            name=name or entry_id.title(),
            category=category,
            latitude=lat,
            longitude=lng,
            location_name=location,
            departure_location=departure_location,
            arrival_location=arrival_location,
            departure_tz=departure_tz,
            arrival_tz=arrival_tz,
        )
        return Entry(
            id=entry_id,
            start_time=at(start, date),
            end_time=at(end, date),
            is_scheduled=scheduled,
            is_locked=locked,
            options=[option],
        )

    return _make


@pytest.fixture
def fake_provider():
    return FakeProvider
