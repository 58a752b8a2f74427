# trip_timeline/api/services/conflict_service.py
"""Service layer for travel conflicts and the fixes offered for them."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from trip_timeline.api.block_detection import (
    block_has_locked_entry,
    get_block,
    get_entries_after_in_block,
)
from trip_timeline.api.config import get_timeline_config
from trip_timeline.api.history import UndoAction
from trip_timeline.api.models import (
    ConflictInfo,
    Entry,
    EntryChange,
    Recommendation,
    TravelResult,
)
from trip_timeline.api.services.travel_service import TravelCalculator
from trip_timeline.api.store import EntryNotFoundError, EntryStore
from trip_timeline.api.timezone_utils import utc_to_local

logger = logging.getLogger(__name__)


def _round_minutes(value: float) -> int:
    # Half-up, so 2.5 minutes reads as 3 rather than banker's 2.
    return int(math.floor(value + 0.5))


def _gap_minutes(earlier_end: datetime, later_start: datetime) -> float:
    return (later_start - earlier_end).total_seconds() / 60


def analyze_conflict(placed_entry: Entry, prev_entry: Optional[Entry], next_entry: Optional[Entry],
                     prev_travel_min: Optional[float], next_travel_min: Optional[float]) -> ConflictInfo:
    """Compare the travel needed on each side of ``placed_entry`` with the gaps available.

    A missing travel time counts as zero minutes needed, so an unknown leg
    never produces a conflict.
    """
    prev_gap = _gap_minutes(prev_entry.end_time, placed_entry.start_time) if prev_entry else None
    next_gap = _gap_minutes(placed_entry.end_time, next_entry.start_time) if next_entry else None

    prev_shortfall = max(0.0, (prev_travel_min or 0) - prev_gap) if prev_gap is not None else 0.0
    next_shortfall = max(0.0, (next_travel_min or 0) - next_gap) if next_gap is not None else 0.0

    return ConflictInfo(
        entry_id=placed_entry.id,
        entry_name=placed_entry.name,
        discrepancy_min=_round_minutes(prev_shortfall + next_shortfall),
        prev_travel_min=prev_travel_min,
        next_travel_min=next_travel_min,
        prev_gap_min=_round_minutes(prev_gap) if prev_gap is not None else None,
        next_gap_min=_round_minutes(next_gap) if next_gap is not None else None,
    )


def _hhmm(instant: datetime, tz: str) -> str:
    return utc_to_local(instant, tz)[1]


def generate_recommendations(conflict: ConflictInfo, day_entries: List[Entry], placed_entry_id: str,
                             tz: str = "UTC", max_recommendations: Optional[int] = None,
                             shorten_margin: Optional[int] = None) -> List[Recommendation]:
    """Build a ranked list of fixes for ``conflict``.

    Ranking: push back the block that follows the placed entry, then per
    unlocked entry a shift (later if after the placed entry, earlier if
    before) and a shortening where the entry is long enough, then skipping
    each unlocked entry. Locked entries and the placed entry are never moved.
    """
    cfg = get_timeline_config()
    if max_recommendations is None:
        max_recommendations = cfg["max_recommendations"]
    if shorten_margin is None:
        shorten_margin = cfg["shorten_margin_minutes"]

    discrepancy = conflict.discrepancy_min
    if discrepancy <= 0:
        return []

    delta = timedelta(minutes=discrepancy)
    ordered = sorted(day_entries, key=lambda e: e.start_time)
    placed_idx = next((i for i, e in enumerate(ordered) if e.id == placed_entry_id), -1)
    unlocked = [(i, e) for i, e in enumerate(ordered) if not e.is_locked and e.id != placed_entry_id]
    recommendations: List[Recommendation] = []

    if 0 <= placed_idx < len(ordered) - 1:
        successor = ordered[placed_idx + 1]
        block = get_block(successor.id, ordered)
        downstream = [successor] + get_entries_after_in_block(successor.id, block)
        if len(downstream) > 1 and not block_has_locked_entry(block):
            recommendations.append(Recommendation(
                id=f"shift-block-{successor.id}",
                kind="shift_block",
                label=f"Push back the {len(downstream)} entries from \"{successor.name}\" by {discrepancy}m",
                description=(f"Start the block at {_hhmm(successor.start_time + delta, tz)} "
                             f"instead of {_hhmm(successor.start_time, tz)}"),
                changes=[EntryChange(e.id, e.start_time + delta, e.end_time + delta) for e in downstream],
            ))

    for idx, entry in unlocked:
        if idx > placed_idx:
            shifted = entry.start_time + delta
            recommendations.append(Recommendation(
                id=f"shift-later-{entry.id}",
                kind="shift_later",
                label=f"Start \"{entry.name}\" {discrepancy}m later",
                description=f"Move from {_hhmm(entry.start_time, tz)} to {_hhmm(shifted, tz)}",
                changes=[EntryChange(entry.id, shifted, entry.end_time + delta)],
            ))

        if idx < placed_idx:
            shifted = entry.start_time - delta
            recommendations.append(Recommendation(
                id=f"shift-earlier-{entry.id}",
                kind="shift_earlier",
                label=f"Start \"{entry.name}\" {discrepancy}m earlier",
                description=f"Move from {_hhmm(entry.start_time, tz)} to {_hhmm(shifted, tz)}",
                changes=[EntryChange(entry.id, shifted, entry.end_time - delta)],
            ))

        if entry.duration_minutes > discrepancy + shorten_margin:
            shortened_end = entry.end_time - delta
            recommendations.append(Recommendation(
                id=f"shorten-{entry.id}",
                kind="shorten",
                label=f"Shorten \"{entry.name}\" by {discrepancy}m",
                description=f"End at {_hhmm(shortened_end, tz)} instead of {_hhmm(entry.end_time, tz)}",
                changes=[EntryChange(entry.id, entry.start_time, shortened_end)],
            ))

    for _, entry in unlocked:
        recommendations.append(Recommendation(
            id=f"skip-{entry.id}",
            kind="skip",
            label=f"Skip \"{entry.name}\"",
            description="Move to ideas (unscheduled)",
            skip_entry_ids=[entry.id],
        ))

    return recommendations[:max_recommendations]


def build_recommendation_action(recommendation: Recommendation, entries: List[Entry],
                                store: EntryStore) -> UndoAction:
    """Wrap ``recommendation`` as a reversible edit against ``store``.

    The current times of every touched entry are captured now, from
    ``entries``, so the inverse restores exactly what was there before.
    """
    by_id = {e.id: e for e in entries}
    touched = [c.entry_id for c in recommendation.changes] + list(recommendation.skip_entry_ids)
    for entry_id in touched:
        if entry_id not in by_id:
            raise EntryNotFoundError(entry_id)
    before = {entry_id: (by_id[entry_id].start_time, by_id[entry_id].end_time) for entry_id in touched}

    async def redo():
        for change in recommendation.changes:
            await store.update_times(change.entry_id, change.new_start, change.new_end)
        for entry_id in recommendation.skip_entry_ids:
            await store.set_scheduled(entry_id, False)

    async def undo():
        for change in recommendation.changes:
            start, end = before[change.entry_id]
            await store.update_times(change.entry_id, start, end)
        for entry_id in recommendation.skip_entry_ids:
            start, end = before[entry_id]
            await store.set_scheduled(entry_id, True, start, end)

    return UndoAction(description=recommendation.label, undo=undo, redo=redo)


@dataclass
class PlacementCheck:
    """Outcome of checking one placement: verdict, fixes and the travel legs used."""

    conflict: ConflictInfo
    recommendations: List[Recommendation] = field(default_factory=list)
    prev_travel: Optional[TravelResult] = None
    next_travel: Optional[TravelResult] = None

    @property
    def has_conflict(self) -> bool:
        return self.conflict.has_conflict

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflict": self.conflict.to_dict(),
            "has_conflict": self.has_conflict,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "prev_travel": self.prev_travel.to_dict() if self.prev_travel else None,
            "next_travel": self.next_travel.to_dict() if self.next_travel else None,
        }


class ConflictEngine:
    """Checks whether a placement leaves enough time to travel to and from it."""

    def __init__(self, calculator: TravelCalculator, trip_timezone: Optional[str] = None,
                 max_recommendations: Optional[int] = None, shorten_margin: Optional[int] = None):
        cfg = get_timeline_config()
        self.calculator = calculator
        self.trip_timezone = trip_timezone or cfg["trip_timezone"]
        self.max_recommendations = max_recommendations or cfg["max_recommendations"]
        self.shorten_margin = shorten_margin if shorten_margin is not None else cfg["shorten_margin_minutes"]

    @staticmethod
    def neighbours(placed: Entry, day_entries: List[Entry]):
        """Return ``(ordered_day, prev, next)`` with ``placed`` slotted in by start time."""
        others = [e for e in day_entries if e.id != placed.id and e.is_scheduled]
        ordered = sorted(others + [placed], key=lambda e: e.start_time)
        idx = next(i for i, e in enumerate(ordered) if e.id == placed.id)
        prev_entry = ordered[idx - 1] if idx > 0 else None
        next_entry = ordered[idx + 1] if idx < len(ordered) - 1 else None
        return ordered, prev_entry, next_entry

    async def check_placement(self, placed: Entry, day_entries: List[Entry]) -> PlacementCheck:
        ordered, prev_entry, next_entry = self.neighbours(placed, day_entries)

        prev_travel, next_travel = await self.calculator.calculate_travel(placed, prev_entry, next_entry)

        conflict = analyze_conflict(
            placed,
            prev_entry,
            next_entry,
            prev_travel.duration_min if prev_travel else None,
            next_travel.duration_min if next_travel else None,
        )

        recommendations: List[Recommendation] = []
        if conflict.has_conflict:
            logger.info(f"Conflict placing '{conflict.entry_name}': short by {conflict.discrepancy_min}m")
            recommendations = generate_recommendations(
                conflict,
                ordered,
                placed.id,
                tz=self.trip_timezone,
                max_recommendations=self.max_recommendations,
                shorten_margin=self.shorten_margin,
            )

        return PlacementCheck(conflict, recommendations, prev_travel, next_travel)


__all__ = [
    "analyze_conflict",
    "generate_recommendations",
    "build_recommendation_action",
    "PlacementCheck",
    "ConflictEngine",
]
