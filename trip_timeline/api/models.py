"""Shared data structures for the trip timeline.

Entries and their options are owned by the persistence layer; everything
else in here (blocks, layout results, conflicts, recommendations) is derived
from a snapshot of entries and thrown away on the next change.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

TRANSFER_CATEGORY = "transfer"
FLIGHT_CATEGORY = "flight"


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Naive values are taken to be UTC already.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """Serialise an instant as UTC ISO-8601 with a trailing ``Z``."""
    return parse_instant(value).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class EntryOption:
    """A concrete place/transport choice attached to an entry."""

    id: str
    name: str
    category: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_name: Optional[str] = None
    departure_location: Optional[str] = None
    arrival_location: Optional[str] = None
    departure_tz: Optional[str] = None
    arrival_tz: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_name": self.location_name,
            "departure_location": self.departure_location,
            "arrival_location": self.arrival_location,
            "departure_tz": self.departure_tz,
            "arrival_tz": self.arrival_tz,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntryOption":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            category=data.get("category"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            location_name=data.get("location_name"),
            departure_location=data.get("departure_location"),
            arrival_location=data.get("arrival_location"),
            departure_tz=data.get("departure_tz"),
            arrival_tz=data.get("arrival_tz"),
        )


@dataclass
class Entry:
    """One scheduled or candidate item on the itinerary timeline.

    Only the first option is authoritative for layout and conflict checks.
    """

    id: str
    start_time: datetime
    end_time: datetime
    is_scheduled: bool = True
    is_locked: bool = False
    options: List[EntryOption] = field(default_factory=list)

    def __post_init__(self):
        self.start_time = parse_instant(self.start_time)
        self.end_time = parse_instant(self.end_time)
        if self.end_time < self.start_time:
            raise ValueError(f"Entry {self.id} ends before it starts")

    @property
    def primary_option(self) -> Optional[EntryOption]:
        return self.options[0] if self.options else None

    @property
    def name(self) -> str:
        opt = self.primary_option
        return opt.name if opt and opt.name else "Entry"

    @property
    def category(self) -> Optional[str]:
        opt = self.primary_option
        return opt.category if opt else None

    @property
    def is_transport(self) -> bool:
        return self.category == TRANSFER_CATEGORY

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60

    def with_times(self, start_time: datetime, end_time: datetime) -> "Entry":
        return replace(self, start_time=start_time, end_time=end_time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_time": format_instant(self.start_time),
            "end_time": format_instant(self.end_time),
            "is_scheduled": self.is_scheduled,
            "is_locked": self.is_locked,
            "options": [opt.to_dict() for opt in self.options],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        return cls(
            id=str(data["id"]),
            start_time=parse_instant(data["start_time"]),
            end_time=parse_instant(data["end_time"]),
            is_scheduled=data.get("is_scheduled") is not False,
            is_locked=bool(data.get("is_locked", False)),
            options=[EntryOption.from_dict(o) for o in data.get("options") or []],
        )


@dataclass
class Block:
    """A maximal run of time-contiguous scheduled entries."""

    entries: List[Entry] = field(default_factory=list)
    transports: List[Entry] = field(default_factory=list)
    events: List[Entry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "entries": [e.id for e in self.entries],
            "transports": [e.id for e in self.transports],
            "events": [e.id for e in self.events],
        }


@dataclass(frozen=True)
class LayoutEntry:
    id: str
    start_minutes: float
    end_minutes: float


@dataclass(frozen=True)
class LayoutResult:
    entry_id: str
    column: int
    total_columns: int

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "column": self.column,
            "total_columns": self.total_columns,
        }


@dataclass(frozen=True)
class TravelLocation:
    """Lookup key for the travel-time provider: a coordinate pair or an address."""

    lat: Optional[float] = None
    lng: Optional[float] = None
    address: Optional[str] = None

    def as_query(self) -> str:
        if self.address:
            return self.address
        return f"{self.lat},{self.lng}"


@dataclass
class TravelResult:
    from_entry_id: str
    to_entry_id: str
    duration_min: float
    distance_km: float = 0.0

    def to_dict(self) -> dict:
        return {
            "from_entry_id": self.from_entry_id,
            "to_entry_id": self.to_entry_id,
            "duration_min": self.duration_min,
            "distance_km": self.distance_km,
        }


@dataclass
class ConflictInfo:
    """Verdict for one placement attempt.

    ``discrepancy_min`` is the shortfall: positive means the required travel
    does not fit in the available gaps. Gaps are None when there is no
    neighbour on that side.
    """

    entry_id: str
    entry_name: str
    discrepancy_min: int
    prev_travel_min: Optional[float] = None
    next_travel_min: Optional[float] = None
    prev_gap_min: Optional[int] = None
    next_gap_min: Optional[int] = None

    @property
    def has_conflict(self) -> bool:
        return self.discrepancy_min > 0

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "entry_name": self.entry_name,
            "discrepancy_min": self.discrepancy_min,
            "prev_travel_min": self.prev_travel_min,
            "next_travel_min": self.next_travel_min,
            "prev_gap_min": self.prev_gap_min,
            "next_gap_min": self.next_gap_min,
        }


@dataclass(frozen=True)
class EntryChange:
    entry_id: str
    new_start: datetime
    new_end: datetime

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "new_start": format_instant(self.new_start),
            "new_end": format_instant(self.new_end),
        }


@dataclass
class Recommendation:
    """One candidate fix for a conflict. Describes its effect, never applies it."""

    id: str
    kind: str
    label: str
    description: str
    changes: List[EntryChange] = field(default_factory=list)
    skip_entry_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "label": self.label,
            "description": self.description,
            "changes": [c.to_dict() for c in self.changes],
            "skip_entry_ids": list(self.skip_entry_ids),
        }
