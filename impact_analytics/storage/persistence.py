"""
Persistence collaborator: append-only documents and daily snapshots.

Every call is a single bounded insert or read against the storage backend;
callers never read a document back in order to modify it. Writes carry a
CommitGate, so one that times out is rolled back rather than landing late.
"""

import time
from datetime import date, datetime
from typing import Callable, Optional, Union

import structlog
from pydantic import BaseModel

from impact_analytics.config import get_settings
from impact_analytics.models.reports import Snapshot

from .base import StorageBackend
from .bounded import CommitGate, run_bounded

logger = structlog.get_logger()

Document = Union[dict, BaseModel]


class Persistence:
    """Bounded document and snapshot writes over a StorageBackend."""

    def __init__(self, storage: StorageBackend, timeout: Optional[float] = None):
        self.storage = storage
        self.timeout = timeout or get_settings().collaborator_timeout_seconds

    def insert(
        self,
        collection: str,
        document: Document,
        expires_at: Optional[datetime] = None,
        doc_id: Optional[str] = None,
    ) -> str:
        """
        Append a document and return its id.

        Raises:
            DataFetchError: If the insert fails or times out
        """
        payload = document.model_dump(mode="json") if isinstance(document, BaseModel) else document
        return run_bounded(
            self.storage.insert_document,
            collection,
            payload,
            expires_at=expires_at,
            doc_id=doc_id,
            commit_gate=CommitGate(),
            timeout=self.timeout,
            operation=f"insert_{collection}",
        )

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return run_bounded(
            self.storage.get_document,
            collection,
            doc_id,
            timeout=self.timeout,
            operation=f"get_{collection}",
        )

    def query(
        self,
        collection: str,
        predicate: Optional[Callable[[dict], bool]] = None,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> list[dict]:
        """Documents of a collection (newest first) that satisfy `predicate`."""
        documents = run_bounded(
            self.storage.query_documents,
            collection,
            since=since,
            limit=limit,
            timeout=self.timeout,
            operation=f"query_{collection}",
        )
        if predicate is None:
            return documents
        return [doc for doc in documents if predicate(doc)]

    def insert_snapshots(self, snapshots: list[Snapshot]) -> int:
        """
        Insert a snapshot batch atomically, skipping keys already stored.

        Returns:
            Number of new snapshot rows
        """
        rows = [
            {
                "snapshot_date": s.snapshot_date,
                "domain": s.domain,
                "period_type": s.period_type,
                "data": s.data,
                "created_at": s.created_at,
                "expires_at": s.expires_at,
            }
            for s in snapshots
        ]
        return run_bounded(
            self.storage.insert_snapshots,
            rows,
            commit_gate=CommitGate(),
            timeout=self.timeout,
            operation="insert_snapshots",
        )

    def read_snapshots(
        self,
        domain: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Snapshot]:
        rows = run_bounded(
            self.storage.read_snapshots,
            domain=domain,
            start=start,
            end=end,
            timeout=self.timeout,
            operation="read_snapshots",
        )
        return [Snapshot.model_validate(row) for row in rows]

    def purge(self, now: datetime) -> int:
        return run_bounded(
            self.storage.purge_expired,
            now,
            timeout=self.timeout,
            operation="purge_expired",
        )

    def ping(self) -> float:
        """Probe the backend; returns round-trip latency in milliseconds."""
        started = time.perf_counter()
        run_bounded(self.storage.health_check, timeout=self.timeout, operation="health_check")
        return (time.perf_counter() - started) * 1000.0
