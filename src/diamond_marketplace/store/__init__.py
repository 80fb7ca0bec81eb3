"""Record store implementations for the marketplace."""

from .base import COLLECTIONS, BaseRecordStore, Collection
from .memory import InMemoryRecordStore
from .sqlite import SQLiteRecordStore, connect_to_sqlite_store

__all__ = [
    "COLLECTIONS",
    "BaseRecordStore",
    "Collection",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "connect_to_sqlite_store",
]
