# trip_timeline/api/services/timeline_service.py
"""Service layer tying placement, conflict checks and undo/redo together."""

import logging
import math
import secrets
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from trip_timeline.api.block_detection import (
    block_has_locked_entry,
    get_block,
    get_entries_after_in_block,
)
from trip_timeline.api.config import get_timeline_config
from trip_timeline.api.directions import GoogleDirectionsProvider, TravelTimeProvider
from trip_timeline.api.history import UndoAction, UndoRedoStack
from trip_timeline.api.models import FLIGHT_CATEGORY, Block, Entry, LayoutResult
from trip_timeline.api.overlap_layout import compute_overlap_layout, layout_entries_for_day
from trip_timeline.api.services.conflict_service import (
    ConflictEngine,
    PlacementCheck,
    build_recommendation_action,
)
from trip_timeline.api.services.travel_service import TravelCalculator
from trip_timeline.api.store import EntryNotFoundError, EntryStore, InMemoryEntryStore
from trip_timeline.api.timezone_utils import (
    DayTimezoneInfo,
    build_day_timezone_map,
    get_date_in_timezone,
    local_to_utc,
    resolve_drop_tz,
    resolve_entry_tz,
    utc_to_local,
    wall_clock_hours,
)

logger = logging.getLogger(__name__)

# Re-timed transfers are rounded up to this many minutes
TRANSFER_ROUNDING_MINUTES = 5

Times = Tuple[datetime, datetime]


class LockedBlockError(ValueError):
    """Raised when a cascading shift would move a locked entry."""


class AlreadyScheduledError(ValueError):
    """Raised when placing a flight that is already on the timeline."""


class TimelineService:
    """Handles timeline edits for one trip.

    Every derived view (day entries, day zones, layout, blocks, conflicts)
    is computed from the latest snapshot of the store; nothing is patched in
    place.
    """

    def __init__(self, store: EntryStore, engine: ConflictEngine, trip_timezone: Optional[str] = None):
        self.store = store
        self.engine = engine
        self.trip_timezone = trip_timezone or engine.trip_timezone
        self.history = UndoRedoStack(on_after_action=self._resync)
        self.pending: Optional[PlacementCheck] = None
        self._entries: List[Entry] = []

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def entries(self) -> List[Entry]:
        return list(self._entries)

    async def refresh(self) -> List[Entry]:
        """Reload the snapshot from the store."""
        self._entries = await self.store.list_entries()
        logger.debug(f"Snapshot refreshed: {len(self._entries)} entries")
        return self.entries

    async def _resync(self) -> None:
        await self.refresh()

    def get_entry(self, entry_id: str) -> Entry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError(entry_id)

    # ------------------------------------------------------------------
    # Days and zones
    # ------------------------------------------------------------------

    def trip_days(self, *extra_days: str) -> List[str]:
        """Dates that hold scheduled entries (in the trip zone), plus ``extra_days``."""
        days = {
            get_date_in_timezone(e.start_time, self.trip_timezone)
            for e in self._entries if e.is_scheduled
        }
        days.update(extra_days)
        return sorted(days)

    def day_timezones(self, *extra_days: str) -> Dict[str, DayTimezoneInfo]:
        return build_day_timezone_map(self._entries, self.trip_days(*extra_days), self.trip_timezone)

    def day_timezone(self, date_str: str) -> DayTimezoneInfo:
        return self.day_timezones(date_str)[date_str]

    def day_entries(self, date_str: str) -> List[Entry]:
        """Scheduled entries starting on ``date_str`` in that day's active zone, by start time."""
        tz = self.day_timezone(date_str).active_tz
        day = [
            e for e in self._entries
            if e.is_scheduled and get_date_in_timezone(e.start_time, tz) == date_str
        ]
        return sorted(day, key=lambda e: e.start_time)

    def local_times(self) -> Dict[str, dict]:
        """Wall-clock start/end of every entry, each in the zone it is lived in."""
        tz_map = self.day_timezones()
        views = {}
        for entry in self._entries:
            start_tz, end_tz = self._entry_zones(entry, tz_map)
            start_date, start_time = utc_to_local(entry.start_time, start_tz)
            end_date, end_time = utc_to_local(entry.end_time, end_tz)
            views[entry.id] = {
                "start_tz": start_tz,
                "end_tz": end_tz,
                "start_date": start_date,
                "start_time": start_time,
                "end_date": end_date,
                "end_time": end_time,
            }
        return views

    def _entry_zones(self, entry: Entry, tz_map: Dict[str, DayTimezoneInfo]) -> Tuple[str, str]:
        for day, info in tz_map.items():
            if get_date_in_timezone(entry.start_time, info.active_tz) == day:
                return resolve_entry_tz(entry, info.flights, info.active_tz, self.trip_timezone)
        return resolve_entry_tz(entry, [], None, self.trip_timezone)

    def layout_for_day(self, date_str: str) -> List[LayoutResult]:
        day_start = local_to_utc(date_str, "00:00", self.day_timezone(date_str).active_tz)
        return compute_overlap_layout(layout_entries_for_day(self.day_entries(date_str), day_start))

    def block_for(self, entry_id: str) -> Block:
        return get_block(entry_id, self._entries)

    # ------------------------------------------------------------------
    # Placement and conflicts
    # ------------------------------------------------------------------

    async def place_entry(self, entry_id: str, date_str: str, start_time: str, end_time: str,
                          end_date: Optional[str] = None, tz: Optional[str] = None) -> PlacementCheck:
        """Place an entry at a local wall-clock slot and check it for travel conflicts.

        Without ``tz`` the slot is read in the zone the day is lived in at that
        hour (origin or destination of the day's last flight). An entry that is
        already scheduled is placed as a copy; a scheduled flight is refused.

        The placement is applied and recorded for undo whether or not it
        conflicts; a conflict is kept as ``pending`` until it is resolved or
        dismissed.
        """
        await self.refresh()
        entry = self.get_entry(entry_id)
        is_flight = entry.category == FLIGHT_CATEGORY
        if is_flight and entry.is_scheduled:
            raise AlreadyScheduledError(f"Flight {entry.name} is already scheduled")

        if tz is None:
            tz = resolve_drop_tz(wall_clock_hours(start_time), self.day_timezone(date_str),
                                 self.trip_timezone)
        start = local_to_utc(date_str, start_time, tz)
        end = local_to_utc(end_date or date_str, end_time, tz)
        if end < start:
            raise ValueError("Entry cannot end before it starts")

        if entry.is_scheduled:
            action, placed_id = self._copy_action(entry, start, end)
        else:
            action, placed_id = self._move_action(entry, start, end), entry_id

        await action.redo()
        self.history.push(action)
        await self.refresh()

        placed = self.get_entry(placed_id)
        check = await self.engine.check_placement(placed, self.day_entries(date_str))
        self.pending = check if check.has_conflict else None
        if not check.has_conflict:
            logger.info(f"Placed {placed.name} on timeline")
        return check

    def _move_action(self, entry: Entry, start: datetime, end: datetime) -> UndoAction:
        old_start, old_end, was_scheduled = entry.start_time, entry.end_time, entry.is_scheduled

        async def redo():
            await self.store.set_scheduled(entry.id, True, start, end)

        async def undo():
            await self.store.set_scheduled(entry.id, was_scheduled, old_start, old_end)

        return UndoAction(description=f"Place {entry.name}", undo=undo, redo=redo)

    def _copy_action(self, entry: Entry, start: datetime, end: datetime) -> Tuple[UndoAction, str]:
        copy_id = f"entry_{secrets.token_urlsafe(8)}"
        placed = Entry(
            id=copy_id,
            start_time=start,
            end_time=end,
            is_scheduled=True,
            options=[replace(opt, id=f"option_{secrets.token_urlsafe(8)}") for opt in entry.options],
        )

        async def redo():
            await self.store.add_entry(placed)

        async def undo():
            await self.store.remove_entry(copy_id)

        logger.info(f"{entry.name} is already scheduled; placing a copy as {copy_id}")
        return UndoAction(description=f"Place copy of {entry.name}", undo=undo, redo=redo), copy_id

    async def resolve_conflict(self, recommendation_id: str) -> UndoAction:
        """Apply one of the pending conflict's recommendations as an undoable edit."""
        if self.pending is None:
            raise ValueError("No conflict is waiting to be resolved")

        recommendation = next(
            (r for r in self.pending.recommendations if r.id == recommendation_id), None
        )
        if recommendation is None:
            raise ValueError(f"Unknown recommendation: {recommendation_id}")

        await self.refresh()
        action = build_recommendation_action(recommendation, self._entries, self.store)
        await action.redo()
        self.history.push(action)
        self.pending = None
        await self.refresh()
        logger.info(f"Resolved conflict: {recommendation.label}")
        return action

    def dismiss_conflict(self) -> None:
        """Keep the conflicting placement as it is."""
        if self.pending is not None:
            logger.info(f"Kept conflicting placement of {self.pending.conflict.entry_name}")
        self.pending = None

    # ------------------------------------------------------------------
    # Cascading edits
    # ------------------------------------------------------------------

    async def chain_shift(self, entry_id: str, delta: timedelta) -> List[str]:
        """Stretch an entry's end by ``delta`` and move the rest of its block with it.

        Refused when any entry in the block is locked.
        """
        await self.refresh()
        entry = self.get_entry(entry_id)
        block = get_block(entry_id, self._entries)
        if block_has_locked_entry(block):
            raise LockedBlockError(f"Block containing {entry_id} has a locked entry")
        if entry.end_time + delta < entry.start_time:
            raise ValueError("Entry cannot end before it starts")

        updates = [(entry, entry.start_time, entry.end_time + delta)]
        updates += [(e, e.start_time + delta, e.end_time + delta)
                    for e in get_entries_after_in_block(entry_id, block)]
        return await self._apply_updates("Chain resize", updates)

    async def move_group(self, entry_ids: Iterable[str], delta: timedelta) -> List[str]:
        """Move several entries by the same amount."""
        if not delta:
            return []
        await self.refresh()
        updates = []
        for entry_id in entry_ids:
            entry = self.get_entry(entry_id)
            updates.append((entry, entry.start_time + delta, entry.end_time + delta))
        return await self._apply_updates("Move group", updates)

    async def _apply_updates(self, description: str,
                             updates: List[Tuple[Entry, datetime, datetime]]) -> List[str]:
        """Write ``updates``, re-time any transfers among them, and record one undo step."""
        if not updates:
            return []
        before: Dict[str, Times] = {e.id: (e.start_time, e.end_time) for e, _, _ in updates}

        for entry, start, end in updates:
            await self.store.update_times(entry.id, start, end)
        await self.refresh()

        transfers = [e.id for e, _, _ in updates if e.is_transport]
        await self._recalculate_transfers(transfers, before)

        after: Dict[str, Times] = {}
        for entry_id in before:
            entry = self.get_entry(entry_id)
            after[entry_id] = (entry.start_time, entry.end_time)

        async def redo():
            for entry_id, (start, end) in after.items():
                await self.store.update_times(entry_id, start, end)

        async def undo():
            for entry_id, (start, end) in before.items():
                await self.store.update_times(entry_id, start, end)

        self.history.push(UndoAction(description=description, undo=undo, redo=redo))
        logger.info(f"{description}: moved {len(after)} entries")
        return list(after)

    async def _recalculate_transfers(self, transfer_ids: List[str], before: Dict[str, Times]) -> None:
        """Re-look-up each moved transfer and push back whatever it now runs into.

        A transfer whose journey got longer pushes the entries after it in
        its block forward, stopping at the first one it no longer reaches or
        at a locked entry. Times first touched here are added to ``before``.
        """
        for transfer_id in transfer_ids:
            transfer = self.get_entry(transfer_id)
            travel = await self.engine.calculator.calculate_transfer(transfer)
            if travel is None:
                continue

            minutes = math.ceil(travel.duration_min / TRANSFER_ROUNDING_MINUTES) * TRANSFER_ROUNDING_MINUTES
            new_end = transfer.start_time + timedelta(minutes=minutes)
            if new_end != transfer.end_time:
                await self.store.update_times(transfer_id, transfer.start_time, new_end)
                await self.refresh()
                logger.info(f"Re-timed transfer {transfer.name} to {minutes}m")

            cursor = new_end
            for follower in get_entries_after_in_block(transfer_id, get_block(transfer_id, self._entries)):
                if follower.start_time >= cursor:
                    break
                if follower.is_locked:
                    logger.warning(f"Transfer {transfer.name} now overlaps locked entry {follower.name}")
                    break
                shift = cursor - follower.start_time
                before.setdefault(follower.id, (follower.start_time, follower.end_time))
                await self.store.update_times(follower.id, follower.start_time + shift,
                                              follower.end_time + shift)
                cursor = follower.end_time + shift
            await self.refresh()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    async def undo(self) -> Optional[UndoAction]:
        return await self.history.undo()

    async def redo(self) -> Optional[UndoAction]:
        return await self.history.redo()


def create_timeline_service(store: Optional[EntryStore] = None,
                            provider: Optional[TravelTimeProvider] = None) -> TimelineService:
    """Wire a TimelineService from configuration.

    Without a store, entries are loaded from ``TRIP_DATA_PATH`` when set,
    otherwise the trip starts empty.
    """
    cfg = get_timeline_config()
    if store is None:
        if cfg["data_path"]:
            store = InMemoryEntryStore.from_json_file(cfg["data_path"])
        else:
            logger.warning("No TRIP_DATA_PATH set. Starting with an empty trip.")
            store = InMemoryEntryStore()

    calculator = TravelCalculator(provider or GoogleDirectionsProvider())
    engine = ConflictEngine(calculator, trip_timezone=cfg["trip_timezone"])
    return TimelineService(store, engine)


__all__ = ["TimelineService", "LockedBlockError", "AlreadyScheduledError", "create_timeline_service"]
