# trip_timeline/api/store.py
"""Entry storage used by the timeline service.

The real trip data lives elsewhere; the service only needs the small async
surface described by ``EntryStore``. ``InMemoryEntryStore`` implements it for
local runs and tests.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from trip_timeline.api.models import Entry

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class EntryNotFoundError(KeyError):
    """Raised when an entry id is not in the current trip."""


class EntryStore(Protocol):
    async def list_entries(self) -> List[Entry]:
        ...

    async def get_entry(self, entry_id: str) -> Optional[Entry]:
        ...

    async def add_entry(self, entry: Entry) -> None:
        ...

    async def remove_entry(self, entry_id: str) -> None:
        ...

    async def update_times(self, entry_id: str, start_time: datetime, end_time: datetime) -> None:
        ...

    async def set_scheduled(self, entry_id: str, scheduled: bool,
                            start_time: Optional[datetime] = None,
                            end_time: Optional[datetime] = None) -> None:
        ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        ...


class InMemoryEntryStore:
    """Thread-safe dict of entries that notifies listeners on every write."""

    def __init__(self, entries: Iterable[Entry] = ()):
        self._entries: Dict[str, Entry] = {e.id: copy.deepcopy(e) for e in entries}
        self._listeners: List[ChangeListener] = []
        self.lock = threading.Lock()

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryEntryStore":
        """Load ``{"entries": [...]}`` (or a bare list) from ``path``."""
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        raw = payload.get("entries", []) if isinstance(payload, dict) else payload
        entries = [Entry.from_dict(item) for item in raw]
        logger.info(f"Loaded {len(entries)} entries from {path}")
        return cls(entries)

    async def list_entries(self) -> List[Entry]:
        with self.lock:
            return copy.deepcopy(list(self._entries.values()))

    async def get_entry(self, entry_id: str) -> Optional[Entry]:
        with self.lock:
            entry = self._entries.get(entry_id)
            return copy.deepcopy(entry) if entry else None

    async def add_entry(self, entry: Entry) -> None:
        with self.lock:
            self._entries[entry.id] = copy.deepcopy(entry)
        self._notify(entry.id)

    async def remove_entry(self, entry_id: str) -> None:
        with self.lock:
            self._require(entry_id)
            del self._entries[entry_id]
        self._notify(entry_id)

    async def update_times(self, entry_id: str, start_time: datetime, end_time: datetime) -> None:
        with self.lock:
            entry = self._require(entry_id)
            self._entries[entry_id] = entry.with_times(start_time, end_time)
        self._notify(entry_id)

    async def set_scheduled(self, entry_id: str, scheduled: bool,
                            start_time: Optional[datetime] = None,
                            end_time: Optional[datetime] = None) -> None:
        with self.lock:
            entry = self._require(entry_id)
            self._entries[entry_id] = replace(
                entry,
                is_scheduled=scheduled,
                start_time=start_time or entry.start_time,
                end_time=end_time or entry.end_time,
            )
        self._notify(entry_id)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(entry_id)``; returns a function that unsubscribes it."""
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _require(self, entry_id: str) -> Entry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def _notify(self, entry_id: str) -> None:
        with self.lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(entry_id)
            except Exception as e:
                logger.error(f"Change listener failed for {entry_id}: {e}")


__all__ = ["EntryStore", "InMemoryEntryStore", "ChangeListener", "EntryNotFoundError"]
