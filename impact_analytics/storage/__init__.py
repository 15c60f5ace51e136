"""
Data storage layer.

Operational records, append-only documents and daily snapshots, all held in
DuckDB. The engine reaches storage only through the RecordStore (reads) and
Persistence (inserts) collaborators, both of which bound every call in time.
"""

from functools import lru_cache

from impact_analytics.config import get_settings

from .base import StorageBackend
from .bounded import CommitGate, run_bounded
from .duckdb_storage import DuckDBStorage, StorageError
from .persistence import Persistence
from .record_store import RecordStore, apply_filters


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    return DuckDBStorage(db_path=settings.db_path)


def get_record_store() -> RecordStore:
    return RecordStore(get_storage())


def get_persistence() -> Persistence:
    return Persistence(get_storage())


__all__ = [
    "StorageBackend",
    "DuckDBStorage",
    "StorageError",
    "RecordStore",
    "Persistence",
    "apply_filters",
    "run_bounded",
    "CommitGate",
    "get_storage",
    "get_record_store",
    "get_persistence",
]
