# trip_timeline/api/runtime.py
"""A long-lived asyncio loop for the timeline's async service calls.

Flask and Socket.IO handlers run on worker threads; they hand coroutines to
this loop and block on the result.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """Runs an event loop in a daemon thread."""

    def __init__(self):
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._ready.clear()
            self._thread = threading.Thread(target=self._run, name="timeline-loop", daemon=True)
            self._thread.start()
        self._ready.wait(timeout=5)
        logger.info("Background event loop started")

    def _run(self) -> None:
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._ready.set()
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = 30) -> Any:
        """Run ``coro`` on the loop and wait for its result."""
        if not self.is_running:
            self.start()
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout=timeout)

    def stop(self) -> None:
        with self._lock:
            if self.loop is not None and self.is_running:
                self.loop.call_soon_threadsafe(self.loop.stop)
            if self._thread is not None:
                self._thread.join(timeout=2.0)
            self._thread = None
            self.loop = None


# Global loop instance
_background_loop = None


def get_background_loop() -> BackgroundLoop:
    """Get the global BackgroundLoop instance, starting it on first use."""
    global _background_loop
    if _background_loop is None:
        _background_loop = BackgroundLoop()
    _background_loop.start()
    return _background_loop
