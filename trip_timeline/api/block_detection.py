# trip_timeline/api/block_detection.py
"""Group back-to-back entries into blocks that move together."""
from __future__ import annotations

from datetime import timedelta
from typing import Iterable, List

from trip_timeline.api.models import Block, Entry

# Absorbs rounding jitter between consecutive bookings; real free time is longer.
GAP_TOLERANCE = timedelta(minutes=2)


def get_block(entry_id: str, all_entries: Iterable[Entry]) -> Block:
    """Return the maximal chain of scheduled entries around ``entry_id``.

    Neighbours belong to the chain while the gap between one entry's end and
    the next one's start is at most ``GAP_TOLERANCE``. An unknown or
    unscheduled id gives an empty block.
    """
    ordered = sorted((e for e in all_entries if e.is_scheduled), key=lambda e: e.start_time)

    idx = next((i for i, e in enumerate(ordered) if e.id == entry_id), -1)
    if idx < 0:
        return Block()

    start_idx = idx
    for i in range(idx - 1, -1, -1):
        if ordered[i + 1].start_time - ordered[i].end_time <= GAP_TOLERANCE:
            start_idx = i
        else:
            break

    end_idx = idx
    for i in range(idx + 1, len(ordered)):
        if ordered[i].start_time - ordered[i - 1].end_time <= GAP_TOLERANCE:
            end_idx = i
        else:
            break

    members = ordered[start_idx:end_idx + 1]
    return Block(
        entries=members,
        transports=[e for e in members if e.is_transport],
        events=[e for e in members if not e.is_transport],
    )


def block_has_locked_entry(block: Block) -> bool:
    """Locked entries pin their whole block; no automatic cascading shifts."""
    return any(e.is_locked for e in block.entries)


def get_entries_after_in_block(entry_id: str, block: Block) -> List[Entry]:
    for idx, entry in enumerate(block.entries):
        if entry.id == entry_id:
            return block.entries[idx + 1:]
    return []
