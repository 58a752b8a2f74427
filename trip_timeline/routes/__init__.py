"""HTTP and WebSocket routes for the trip timeline."""
