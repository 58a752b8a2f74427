# trip_timeline/api/sync.py
"""Coalesce bursts of change notifications into a single re-sync."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SyncDebouncer:
    """Calls ``on_sync`` once per quiet period.

    Every ``notify()`` restarts the timer, so a burst of collaborative edits
    arriving within ``delay`` seconds of each other produces one call.
    Safe to use from any thread.
    """

    def __init__(self, on_sync: Callable[[], None], delay: float = 0.5):
        self.on_sync = on_sync
        self.delay = delay
        self.pending_notifications = 0
        self.sync_count = 0
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def notify(self) -> None:
        with self._lock:
            self.pending_notifications += 1
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Run a pending sync now. Returns False when nothing was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
        self._run()
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.pending_notifications = 0

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer cancelled after it started running must not fire.
            if self._timer is None or generation != self._generation:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        with self._lock:
            collapsed = self.pending_notifications
            self.pending_notifications = 0
            self.sync_count += 1
        logger.info(f"Re-syncing after {collapsed} change notification(s)")
        try:
            self.on_sync()
        except Exception as e:
            logger.error(f"Re-sync failed: {e}")
