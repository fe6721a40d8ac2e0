"""API routes for the Relay Object Store."""

from .objects import collection_objects_router, get_store

__all__ = ["collection_objects_router", "get_store"]
