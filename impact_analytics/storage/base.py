"""
Abstract storage interface for the impact analytics engine.

The backend holds three kinds of data:
- Records: operational rows (projects, users, transactions, progress
  updates, alerts) keyed by (domain, record_id), read in time order
- Documents: append-only JSON documents (reports, insights, predictions,
  metrics, run manifests) grouped by collection, with optional expiry
- Snapshots: one aggregate per (snapshot_date, domain), inserted once
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Implementations should ensure:
    - Thread safety for concurrent access
    - Atomic writes with proper rollback on failure
    - No read-then-write sequences; every write is a single insert
    """

    # =========================================================================
    # Records
    # =========================================================================

    @abstractmethod
    def write_records(self, domain: str, records: list[dict]) -> int:
        """
        Upsert operational records for a domain.

        Each record dict must carry ``id``, ``event_time`` and ``parent_id``
        alongside its ``payload``.

        Returns:
            Number of records written

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def read_records(
        self,
        domain: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        parent_id: Optional[str] = None,
        after: Optional[tuple[datetime, str]] = None,
        limit: int = 500,
    ) -> list[dict]:
        """
        Read record payloads for a domain ordered by event time then id.

        Args:
            domain: Record domain
            start: Inclusive lower bound on event time
            end: Inclusive upper bound on event time
            parent_id: Restrict to records under this parent key
            after: Keyset cursor; only rows sorting after this
                (event_time, record_id) pair are returned
            limit: Maximum rows to return

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_record(self, domain: str, record_id: str) -> Optional[dict]:
        """Read one record payload, or None if absent."""
        pass

    # =========================================================================
    # Documents
    # =========================================================================

    @abstractmethod
    def insert_document(
        self,
        collection: str,
        document: dict,
        expires_at: Optional[datetime] = None,
        doc_id: Optional[str] = None,
        commit_gate=None,
    ) -> Optional[str]:
        """
        Append a JSON document to a collection.

        When a commit gate is given, the insert commits only if
        ``commit_gate.try_commit()`` returns True and is rolled back otherwise.

        Returns:
            Document id, or None when the gate refused the commit

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        """
        Read one document with its ``_id``, ``_created_at`` and ``_expires_at``
        metadata, or None if absent.
        """
        pass

    @abstractmethod
    def query_documents(
        self,
        collection: str,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> list[dict]:
        """Read documents of a collection, newest first."""
        pass

    # =========================================================================
    # Snapshots
    # =========================================================================

    @abstractmethod
    def insert_snapshots(self, snapshots: list[dict], commit_gate=None) -> int:
        """
        Insert snapshots in one transaction, ignoring keys already present.

        Each snapshot dict carries ``snapshot_date``, ``domain``,
        ``period_type``, ``data``, ``created_at`` and ``expires_at``. The
        commit gate behaves as in ``insert_document``.

        Returns:
            Number of new rows (0 when every key already existed or the gate
            refused the commit)

        Raises:
            StorageError: If the transaction fails; nothing is written
        """
        pass

    @abstractmethod
    def read_snapshots(
        self,
        domain: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[dict]:
        """Read snapshots ordered by date then domain."""
        pass

    # =========================================================================
    # Maintenance
    # =========================================================================

    @abstractmethod
    def purge_expired(self, now: datetime) -> int:
        """Delete documents and snapshots whose expiry has passed."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Run a trivial query; raise StorageError if the backend is unreachable."""
        pass
