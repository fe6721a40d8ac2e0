"""Data models for the Relay Object Store API."""

from .connection import (
    PaginationArgs,
    OrderBy,
    PageInfo,
    Edge,
    Connection
)
from .objects import Object, ObjectConnection

__all__ = [
    "PaginationArgs",
    "OrderBy",
    "PageInfo",
    "Edge",
    "Connection",
    "Object",
    "ObjectConnection"
]
