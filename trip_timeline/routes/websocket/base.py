# trip_timeline/routes/websocket/base.py
"""Shared plumbing for the timeline's Socket.IO handlers."""

import logging
from flask import request
from flask_socketio import emit

logger = logging.getLogger(__name__)

NAMESPACE = "/timeline/ws"


class BaseWebSocketHandler:
    """Emit helpers and error reporting for one namespace."""

    def __init__(self, socketio, namespace=NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit_to_client(self, event, data):
        """Reply to the participant whose event is being handled."""
        try:
            emit(event, data, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to emit {event}: {e}")

    def broadcast(self, event, data):
        """Send to every participant on the namespace."""
        try:
            self.socketio.emit(event, data, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to broadcast {event}: {e}")

    def log_event(self, event_name):
        logger.info(f"[WS] {event_name} - Client: {request.sid}")

    def handle_error(self, error, event_name=""):
        """Log a handler failure and tell the participant about it."""
        logger.error(f"[WS] Error in {event_name} - Client: {request.sid}, Error: {error}")
        self.emit_to_client('error', {'message': str(error), 'event': event_name})
