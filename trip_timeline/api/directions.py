# trip_timeline/api/directions.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import googlemaps
from googlemaps.exceptions import Timeout, TransportError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trip_timeline.api.config import TRAVEL_MODES, get_google_maps_config

logger = logging.getLogger(__name__)

_gmaps: googlemaps.Client | None = None
_route_cache: Dict[Tuple[str, str, str], Dict[str, float]] = {}


class TravelTimeProvider(Protocol):
    """Anything that can say how long it takes to get from A to B."""

    async def get_travel_time(self, origin: str, destination: str,
                              mode: str = "transit") -> Optional[Dict[str, float]]:
        ...


def _get_client() -> googlemaps.Client | None:
    """Return a cached googlemaps.Client instance."""
    global _gmaps
    if _gmaps is None:
        try:
            cfg = get_google_maps_config()
            api_key = cfg.get("api_key", "")
            if not api_key:
                logger.error("No Google Maps API key found in config")
                return None
            logger.info(f"Initializing Google Maps client with key: {api_key[:10]}...")
            _gmaps = googlemaps.Client(key=api_key)
        except Exception as e:
            logger.error(f"Failed to initialize Google Maps client: {e}")
            return None
    return _gmaps


def normalize_mode(mode: str) -> str:
    """Map planner mode names (walk, drive, ...) onto Google's."""
    return TRAVEL_MODES.get((mode or "").lower(), "transit")


@retry(
    retry=retry_if_exception_type((Timeout, TransportError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)
def _request_directions(client: Any, origin: str, destination: str, mode: str) -> list:
    return client.directions(origin, destination, mode=mode, language="en")


def _leg_summary(routes: list) -> Optional[Dict[str, float]]:
    if not routes:
        return None
    legs = routes[0].get("legs") or []
    if not legs:
        return None
    leg = legs[0]
    seconds = leg.get("duration", {}).get("value")
    if seconds is None:
        return None
    meters = leg.get("distance", {}).get("value") or 0
    return {
        "duration_min": round(seconds / 60),
        "distance_km": round(meters / 100) / 10,
    }


class GoogleDirectionsProvider:
    """Travel-time provider backed by the Google Directions API.

    Every failure (no key, network trouble after retries, no route) comes
    back as ``None``; callers treat that as "nothing known" for the leg.
    """

    def __init__(self, client: Any = None, use_cache: bool = True):
        self._client = client
        self.use_cache = use_cache

    async def get_travel_time(self, origin: str, destination: str,
                              mode: str = "transit") -> Optional[Dict[str, float]]:
        return await asyncio.to_thread(self.lookup, origin, destination, mode)

    def lookup(self, origin: str, destination: str, mode: str = "transit") -> Optional[Dict[str, float]]:
        google_mode = normalize_mode(mode)
        key = (origin, destination, google_mode)
        if self.use_cache and key in _route_cache:
            return dict(_route_cache[key])

        client = self._client or _get_client()
        if client is None:
            logger.error("No Google Maps client available")
            return None

        try:
            logger.debug(f"Fetching directions: '{origin}' -> '{destination}' ({google_mode})")
            routes = _request_directions(client, origin, destination, google_mode)
        except Exception as e:
            logger.error(f"Directions error for '{origin}' -> '{destination}': {e}")
            return None

        summary = _leg_summary(routes)
        if summary is None:
            logger.warning(f"No route found: '{origin}' -> '{destination}' ({google_mode})")
            return None

        if self.use_cache:
            _route_cache[key] = summary
        return dict(summary)


def clear_route_cache() -> None:
    _route_cache.clear()


__all__ = [
    "TravelTimeProvider",
    "GoogleDirectionsProvider",
    "normalize_mode",
    "clear_route_cache",
]
