"""
Persistence layer for the memory engine.

Provides:
- SQLite-backed KV store
- Snapshot save/load of memory entries and summaries with retention cleanup
"""

from .sqlite_store import KVStore
from .memory_snapshot import LoadReport, MemoryPersistence

__all__ = [
    "KVStore",
    "LoadReport",
    "MemoryPersistence",
]
