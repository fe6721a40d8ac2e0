"""Relay-style cursor pagination over a JSON document store."""

__version__ = "1.0.0"
