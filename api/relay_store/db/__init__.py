"""Record Stores and database connection management."""

from .base import Store
from .connection import DatabaseManager, db_manager, get_db_pool
from .memory import MemoryStore
from .postgres import PostgresStore, OBJECT_COLUMNS

__all__ = [
    "Store",
    "DatabaseManager",
    "db_manager",
    "get_db_pool",
    "MemoryStore",
    "PostgresStore",
    "OBJECT_COLUMNS"
]
