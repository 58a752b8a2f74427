# trip_timeline/api/services/travel_service.py
"""Service layer for travel-time lookups around a placed entry."""

import asyncio
import logging
from typing import Optional, Tuple

from trip_timeline.api.config import get_timeline_config
from trip_timeline.api.directions import TravelTimeProvider
from trip_timeline.api.models import Entry, TravelLocation, TravelResult

logger = logging.getLogger(__name__)


def get_travel_location(entry: Optional[Entry]) -> Optional[TravelLocation]:
    """Pick the lookup key for an entry's primary option.

    Coordinates win, then the named location, then the departure location.
    Entries with none of these cannot take part in conflict checks.
    """
    if entry is None:
        return None
    opt = entry.primary_option
    if opt is None:
        return None
    if opt.latitude is not None and opt.longitude is not None:
        return TravelLocation(lat=opt.latitude, lng=opt.longitude)
    if opt.location_name:
        return TravelLocation(address=opt.location_name)
    if opt.departure_location:
        return TravelLocation(address=opt.departure_location)
    return None


class TravelCalculator:
    """Looks up travel time for the legs into and out of a placed entry."""

    def __init__(self, provider: TravelTimeProvider, mode: Optional[str] = None,
                 timeout: Optional[float] = None):
        cfg = get_timeline_config()
        self.provider = provider
        self.mode = mode or cfg["travel_mode"]
        self.timeout = timeout if timeout is not None else cfg["lookup_timeout_seconds"]

    async def calculate_travel(self, placed: Entry, prev_entry: Optional[Entry],
                               next_entry: Optional[Entry]
                               ) -> Tuple[Optional[TravelResult], Optional[TravelResult]]:
        """Return ``(prev_travel, next_travel)``; both legs run concurrently.

        A leg whose lookup fails, times out or finds nothing is ``None``.
        """
        placed_loc = get_travel_location(placed)
        if placed_loc is None:
            logger.debug(f"Entry {placed.id} has no location; skipping travel lookup")
            return None, None

        prev_task = self._leg(prev_entry, placed, get_travel_location(prev_entry), placed_loc)
        next_task = self._leg(placed, next_entry, placed_loc, get_travel_location(next_entry))
        prev_travel, next_travel = await asyncio.gather(prev_task, next_task)
        return prev_travel, next_travel

    async def calculate_transfer(self, transfer: Entry) -> Optional[TravelResult]:
        """Look up how long a transfer entry's own journey takes.

        Uses the departure and arrival locations of its primary option;
        ``None`` when either is missing or the lookup comes back empty.
        """
        opt = transfer.primary_option
        if opt is None or not opt.departure_location or not opt.arrival_location:
            return None
        return await self._leg(
            transfer,
            transfer,
            TravelLocation(address=opt.departure_location),
            TravelLocation(address=opt.arrival_location),
        )

    async def _leg(self, from_entry: Optional[Entry], to_entry: Optional[Entry],
                   from_loc: Optional[TravelLocation],
                   to_loc: Optional[TravelLocation]) -> Optional[TravelResult]:
        if from_entry is None or to_entry is None or from_loc is None or to_loc is None:
            return None

        try:
            result = await asyncio.wait_for(
                self.provider.get_travel_time(from_loc.as_query(), to_loc.as_query(), self.mode),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Travel lookup timed out: {from_entry.id} -> {to_entry.id}")
            return None
        except Exception as e:
            logger.warning(f"Travel lookup failed: {from_entry.id} -> {to_entry.id}: {e}")
            return None

        if not result or not result.get("duration_min"):
            return None

        return TravelResult(
            from_entry_id=from_entry.id,
            to_entry_id=to_entry.id,
            duration_min=result["duration_min"],
            distance_km=result.get("distance_km") or 0.0,
        )


__all__ = ["TravelCalculator", "get_travel_location"]
