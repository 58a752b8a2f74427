"""Tests for grouping back-to-back entries into blocks."""

from trip_timeline.api.block_detection import (
    block_has_locked_entry,
    get_block,
    get_entries_after_in_block,
)


def _ids(entries):
    return [e.id for e in entries]


def test_five_minute_gap_splits_blocks(make_entry):
    entries = [
        make_entry("a", "09:00", "10:00"),
        make_entry("b", "10:05", "11:00"),
    ]
    assert _ids(get_block("a", entries).entries) == ["a"]
    assert _ids(get_block("b", entries).entries) == ["b"]


def test_gap_within_tolerance_joins_blocks(make_entry):
    entries = [
        make_entry("c", "11:00", "12:00"),
        make_entry("a", "09:00", "10:00"),
        make_entry("b", "10:02", "11:00"),
    ]
    assert _ids(get_block("b", entries).entries) == ["a", "b", "c"]
    assert _ids(get_block("c", entries).entries) == ["a", "b", "c"]


def test_overlapping_entries_are_contiguous(make_entry):
    entries = [
        make_entry("a", "09:00", "10:30"),
        make_entry("b", "10:00", "11:00"),
    ]
    assert _ids(get_block("a", entries).entries) == ["a", "b"]


def test_transports_and_events_are_split(make_entry):
    entries = [
        make_entry("hotel", "08:00", "09:00"),
        make_entry("taxi", "09:00", "09:30", category="transfer"),
        make_entry("museum", "09:30", "12:00", category="sight"),
    ]
    block = get_block("museum", entries)
    assert _ids(block.transports) == ["taxi"]
    assert _ids(block.events) == ["hotel", "museum"]
    assert block.to_dict()["entries"] == ["hotel", "taxi", "museum"]


def test_unknown_or_unscheduled_id_gives_empty_block(make_entry):
    entries = [
        make_entry("a", "09:00", "10:00"),
        make_entry("idea", "10:00", "11:00", scheduled=False),
    ]
    assert get_block("missing", entries).entries == []
    assert get_block("idea", entries).entries == []


def test_unscheduled_entries_do_not_bridge_blocks(make_entry):
    entries = [
        make_entry("a", "09:00", "10:00"),
        make_entry("idea", "10:00", "11:00", scheduled=False),
        make_entry("b", "11:00", "12:00"),
    ]
    assert _ids(get_block("a", entries).entries) == ["a"]


def test_locked_entry_pins_block(make_entry):
    entries = [
        make_entry("a", "09:00", "10:00"),
        make_entry("b", "10:00", "11:00", locked=True),
        make_entry("c", "13:00", "14:00"),
    ]
    assert block_has_locked_entry(get_block("a", entries))
    assert not block_has_locked_entry(get_block("c", entries))


def test_entries_after_in_block(make_entry):
    entries = [
        make_entry("a", "09:00", "10:00"),
        make_entry("b", "10:00", "11:00"),
        make_entry("c", "11:01", "12:00"),
    ]
    block = get_block("a", entries)
    assert _ids(get_entries_after_in_block("a", block)) == ["b", "c"]
    assert _ids(get_entries_after_in_block("c", block)) == []
    assert get_entries_after_in_block("zzz", block) == []
