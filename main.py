"""
Trip Timeline – main application entry point

* Flask app + Socket.IO serving the timeline engine for a shared trip.
* Async service calls (travel lookups, undo/redo effects) run on one
  background asyncio loop; Socket.IO uses the threading async mode.
* The Socket.IO namespace is `/timeline/ws`.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from trip_timeline.api.config import get_port, get_sync_config, validate_timeline_config  # noqa: E402
from trip_timeline.api.runtime import get_background_loop  # noqa: E402
from trip_timeline.api.services.timeline_service import create_timeline_service  # noqa: E402

validate_timeline_config()

# --------------------------------------------------------------------------- #
# Flask initialisation
# --------------------------------------------------------------------------- #
app = Flask(__name__)

flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
if "FLASK_SECRET_KEY" not in os.environ:
    logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
app.secret_key = flask_secret_key

# CORS for local dev / cross‑origin front‑end requests
CORS(app, origins="*", supports_credentials=True)

# --------------------------------------------------------------------------- #
# Socket.IO
# --------------------------------------------------------------------------- #
socketio = SocketIO(
    app,
    cors_allowed_origins=get_sync_config()["cors_allowed_origins"],
    async_mode="threading",
    logger=False,
    engineio_logger=False,
)
logger.info("Socket.IO initialised (async_mode=threading)")

# --------------------------------------------------------------------------- #
# Timeline service, blueprint & WebSocket handlers
# --------------------------------------------------------------------------- #
from trip_timeline.routes.timeline import create_timeline_blueprint  # noqa: E402
from trip_timeline.routes.websocket import register_websocket_handlers  # noqa: E402

loop = get_background_loop()
timeline_service = create_timeline_service()
loop.run(timeline_service.refresh())

app.register_blueprint(create_timeline_blueprint(timeline_service, loop))
sync_handler = register_websocket_handlers(socketio, timeline_service, loop)


@app.route("/debug")
def debug():
    """Simple JSON health endpoint."""
    return {
        "status": "ok",
        "socketio_initialized": True,
        "entries": len(timeline_service.entries),
        "endpoints": {
            "health": "/timeline/health",
            "websocket_namespace": "/timeline/ws",
        },
    }


# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting timeline app on http://localhost:%d", port)
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)

__all__ = ["app", "socketio"]
