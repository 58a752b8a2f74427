# trip_timeline/routes/websocket/sync.py
"""WebSocket handlers that keep every participant's timeline in step."""

import logging
import time

from trip_timeline.api.config import get_sync_config
from trip_timeline.api.sync import SyncDebouncer

from .base import BaseWebSocketHandler, NAMESPACE

logger = logging.getLogger(__name__)


class SyncHandler(BaseWebSocketHandler):
    """Coalesces change notifications and broadcasts one re-sync per burst.

    Notifications come from two places: participants emitting
    ``entries_changed`` and writes made through the local store.
    """

    def __init__(self, socketio, service, loop, namespace=NAMESPACE, delay=None):
        super().__init__(socketio, namespace)
        self.service = service
        self.loop = loop
        if delay is None:
            delay = get_sync_config()["debounce_seconds"]
        self.debouncer = SyncDebouncer(self.resync, delay=delay)
        self._unsubscribe = None

    def resync(self):
        """Reload the snapshot and tell every client to redraw."""
        entries = self.loop.run(self.service.refresh())
        self.broadcast('timeline_synced', {
            'entry_count': len(entries),
            'can_undo': self.service.can_undo,
            'can_redo': self.service.can_redo,
            'timestamp': time.time(),
        })

    def register_handlers(self):
        """Register sync-related event handlers."""
        subscribe = getattr(self.service.store, 'subscribe', None)
        if subscribe is not None:
            self._unsubscribe = subscribe(lambda entry_id: self.debouncer.notify())

        @self.socketio.on('entries_changed', namespace=self.namespace)
        def handle_entries_changed(data=None):
            """A participant changed something; sync once the burst settles."""
            logger.debug(f"entries_changed: {data}")
            self.debouncer.notify()

        @self.socketio.on('request_sync', namespace=self.namespace)
        def handle_request_sync(data=None):
            """Sync immediately, folding in anything still pending."""
            try:
                if not self.debouncer.flush():
                    self.resync()
            except Exception as e:
                self.handle_error(e, 'request_sync')
