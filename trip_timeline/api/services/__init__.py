"""Service layer for the trip timeline."""
