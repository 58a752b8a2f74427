# trip_timeline/routes/websocket/__init__.py
"""WebSocket route handlers initialization."""

import logging

from .connection import ConnectionHandler
from .sync import SyncHandler
from .base import NAMESPACE

logger = logging.getLogger(__name__)


def register_websocket_handlers(socketio, service, loop):
    """Register all WebSocket event handlers with SocketIO.

    Args:
        socketio: Flask-SocketIO instance
        service: TimelineService shared with the HTTP routes
        loop: BackgroundLoop running the service's coroutines

    Returns:
        The SyncHandler, so callers can flush or cancel pending syncs
    """
    logger.info("Registering timeline WebSocket handlers...")

    try:
        connection_handler = ConnectionHandler(socketio, service, NAMESPACE)
        sync_handler = SyncHandler(socketio, service, loop, NAMESPACE)

        logger.info(f"Registering connection handler for namespace: {NAMESPACE}")
        connection_handler.register_handlers()

        logger.info(f"Registering sync handler for namespace: {NAMESPACE}")
        sync_handler.register_handlers()

        logger.info("✅ Timeline WebSocket handlers registered successfully")
        return sync_handler

    except Exception as e:
        logger.error(f"❌ Failed to register WebSocket handlers: {e}")
        logger.exception("WebSocket registration error:")
        raise


__all__ = ['register_websocket_handlers', 'NAMESPACE']
