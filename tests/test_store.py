import asyncio

import pytest

from conftest import at
from trip_timeline.api.store import EntryNotFoundError, InMemoryEntryStore


def test_add_and_remove_notify_listeners(make_entry):
    store = InMemoryEntryStore([make_entry("hotel", "09:00", "10:00")])
    seen = []
    store.subscribe(seen.append)

    asyncio.run(store.add_entry(make_entry("copy", "12:00", "13:00")))
    asyncio.run(store.remove_entry("hotel"))

    assert seen == ["copy", "hotel"]
    assert [e.id for e in asyncio.run(store.list_entries())] == ["copy"]
    assert asyncio.run(store.get_entry("hotel")) is None


def test_remove_unknown_entry_raises(make_entry):
    store = InMemoryEntryStore([make_entry("hotel", "09:00", "10:00")])
    with pytest.raises(EntryNotFoundError):
        asyncio.run(store.remove_entry("ghost"))


def test_reads_are_copies(make_entry):
    store = InMemoryEntryStore([make_entry("hotel", "09:00", "10:00")])
    entry = asyncio.run(store.get_entry("hotel"))
    entry.start_time = at("11:00")
    assert asyncio.run(store.get_entry("hotel")).start_time == at("09:00")


def test_unsubscribe_stops_notifications(make_entry):
    store = InMemoryEntryStore([make_entry("hotel", "09:00", "10:00")])
    seen = []
    unsubscribe = store.subscribe(seen.append)
    unsubscribe()
    asyncio.run(store.update_times("hotel", at("09:30"), at("10:30")))
    assert seen == []
