"""Trip Timeline: scheduling and conflict resolution for shared itineraries."""

__version__ = "0.1.0"
