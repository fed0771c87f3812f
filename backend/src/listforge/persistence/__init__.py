"""Storage adapters and the protocols they implement."""

from listforge.persistence.adapter import ListAdapter, StorageAdapter
from listforge.persistence.config import DatabaseConfig, create_adapter
from listforge.persistence.memory import MemoryAdapter, MemoryListAdapter
from listforge.persistence.sqlite import SQLiteAdapter, SQLiteListAdapter

__all__ = [
    "DatabaseConfig",
    "ListAdapter",
    "MemoryAdapter",
    "MemoryListAdapter",
    "SQLiteAdapter",
    "SQLiteListAdapter",
    "StorageAdapter",
    "create_adapter",
]
