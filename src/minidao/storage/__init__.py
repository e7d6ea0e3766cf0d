"""minidao storage layer.

Scoped key-value stores backing contract state, with in-memory and SQLite
implementations and nested all-or-nothing transactions.
"""

from .sqlite import SQLiteStore, StoreConfig
from .store import ContractStorage, InMemoryStore, KeyValueStore, StorageScope

__all__ = [
    "StorageScope",
    "KeyValueStore",
    "InMemoryStore",
    "ContractStorage",
    "SQLiteStore",
    "StoreConfig",
]
