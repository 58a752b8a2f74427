# trip_timeline/routes/websocket/connection.py
"""WebSocket connection and disconnection handlers."""

import time
import logging

from flask import request

from .base import BaseWebSocketHandler, NAMESPACE

logger = logging.getLogger(__name__)


class ConnectionHandler(BaseWebSocketHandler):
    """Handles WebSocket connection lifecycle events."""

    def __init__(self, socketio, service, namespace=NAMESPACE):
        super().__init__(socketio, namespace)
        self.service = service

    def register_handlers(self):
        """Register connection-related event handlers."""

        @self.socketio.on('connect', namespace=self.namespace)
        def handle_connect(auth=None):
            """Greet a participant with the current history state."""
            self.log_event('connect')
            logger.info(f"🔗 Client connected to {self.namespace}: {request.sid}")
            self.emit_to_client('connected', {
                'sid': request.sid,
                'trip_timezone': self.service.trip_timezone,
                'can_undo': self.service.can_undo,
                'can_redo': self.service.can_redo,
            })

        @self.socketio.on('disconnect', namespace=self.namespace)
        def handle_disconnect(*args):
            self.log_event('disconnect')

        @self.socketio.on('ping', namespace=self.namespace)
        def handle_ping():
            """Handle ping for connection testing."""
            self.emit_to_client('pong', {'timestamp': time.time()})
