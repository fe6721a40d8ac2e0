"""Pagination module for relay-style cursor pagination."""

from .cursor import encode_cursor, decode_cursor, decode_optional_cursor
from .arguments import coerce_count
from .resolver import ConnectionResolver, resolve_connection

__all__ = [
    "encode_cursor",
    "decode_cursor",
    "decode_optional_cursor",
    "coerce_count",
    "ConnectionResolver",
    "resolve_connection"
]
