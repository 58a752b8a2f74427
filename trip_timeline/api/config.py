# api/config.py
"""Configuration management for the trip timeline API."""
import os
from dotenv import load_dotenv

load_dotenv()

# Google's directions modes, keyed by the short names the planner uses.
TRAVEL_MODES = {
    "walk": "walking",
    "walking": "walking",
    "transit": "transit",
    "drive": "driving",
    "driving": "driving",
    "bicycle": "bicycling",
    "bicycling": "bicycling",
}


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "client_id": os.getenv("maps_client_id", ""),
        "client_secret": os.getenv("maps_client_secret", "")
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))


def get_timeline_config():
    """Get scheduling and conflict-checking configuration."""
    return {
        "trip_timezone": os.getenv("TRIP_TIMEZONE", "Europe/London"),
        "travel_mode": os.getenv("TRAVEL_MODE", "transit"),
        "lookup_timeout_seconds": float(os.getenv("TRAVEL_LOOKUP_TIMEOUT_SECONDS", "10")),
        "max_recommendations": int(os.getenv("MAX_RECOMMENDATIONS", "5")),
        # Only suggest shortening entries that stay this much longer than the shortfall
        "shorten_margin_minutes": int(os.getenv("SHORTEN_MARGIN_MINUTES", "15")),
        "data_path": os.getenv("TRIP_DATA_PATH", ""),
    }


def get_sync_config():
    """Get change-notification coalescing configuration."""
    return {
        "debounce_seconds": float(os.getenv("SYNC_DEBOUNCE_SECONDS", "0.5")),
        "cors_allowed_origins": os.getenv("WEBSOCKET_CORS_ORIGINS", "*").split(","),
    }


def validate_timeline_config():
    """Validate timeline configuration is properly set."""
    from trip_timeline.api.timezone_utils import is_valid_timezone

    cfg = get_timeline_config()

    if not is_valid_timezone(cfg["trip_timezone"]):
        raise ValueError(f"Invalid TRIP_TIMEZONE: {cfg['trip_timezone']}")

    if cfg["travel_mode"] not in TRAVEL_MODES:
        raise ValueError(f"Invalid travel mode. Must be one of: {', '.join(sorted(TRAVEL_MODES))}")

    if cfg["max_recommendations"] < 1:
        raise ValueError("MAX_RECOMMENDATIONS must be at least 1")

    if get_sync_config()["debounce_seconds"] < 0:
        raise ValueError("SYNC_DEBOUNCE_SECONDS cannot be negative")

    return True
