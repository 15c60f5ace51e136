"""
DuckDB storage implementation for the impact analytics engine.

Provides a local storage backend using DuckDB with JSON payload columns.
Records, documents and snapshots each live in one table; every write is a
single INSERT (snapshot batches run in one transaction) so concurrent
callers never race on a read-then-write.

Key features:
- Thread-local connections
- Idempotent schema creation
- JSON columns for nested payloads
- Upserts on records keyed by (domain, record_id)
- Transaction semantics with rollback on error
"""

import json
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Optional
from uuid import uuid4

import duckdb
import structlog

from impact_analytics.models.timeframe import utc_now

from .base import StorageBackend

logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/analytics.duckdb"):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Thread-local storage for connections
        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        try:
            yield self._local.connection
        except Exception:
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self._local.connection.rollback()
        except duckdb.Error as e:
            # No open transaction to roll back
            logger.debug("duckdb_rollback_skipped", reason=str(e))

    def _initialize_schema(self):
        """
        Create tables and indexes. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    # Operational records
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS records (
                            domain VARCHAR NOT NULL,
                            record_id VARCHAR NOT NULL,
                            event_time TIMESTAMP NOT NULL,
                            parent_id VARCHAR,
                            payload JSON NOT NULL,
                            ingested_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                            PRIMARY KEY (domain, record_id)
                        )
                    """)

                    # Append-only documents
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS documents (
                            doc_id VARCHAR PRIMARY KEY,
                            collection VARCHAR NOT NULL,
                            created_at TIMESTAMP NOT NULL,
                            expires_at TIMESTAMP,
                            payload JSON NOT NULL
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_documents_collection
                        ON documents(collection, created_at)
                    """)

                    # Daily snapshots
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS snapshots (
                            snapshot_date DATE NOT NULL,
                            domain VARCHAR NOT NULL,
                            period_type VARCHAR NOT NULL,
                            payload JSON NOT NULL,
                            created_at TIMESTAMP NOT NULL,
                            expires_at TIMESTAMP,
                            PRIMARY KEY (snapshot_date, domain)
                        )
                    """)

                    conn.commit()
                    logger.info("duckdb_schema_initialized")
                    self._initialized = True

            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """
        Truncate all tables. For testing only; a no-op unless TESTING is set.
        """
        if not os.environ.get("TESTING"):
            return
        try:
            with self._get_connection() as conn:
                for table in ("records", "documents", "snapshots"):
                    conn.execute(f"DELETE FROM {table}")
                conn.commit()
        except Exception as e:
            logger.error("clear_for_testing_failed", error=str(e))
            raise StorageError(f"Failed to clear tables: {e}") from e

    # =========================================================================
    # Records
    # =========================================================================

    def write_records(self, domain: str, records: list[dict]) -> int:
        """Upsert operational records in one transaction."""
        if not records:
            return 0

        try:
            with self._get_connection() as conn:
                conn.begin()
                for record in records:
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO records (
                            domain, record_id, event_time, parent_id, payload
                        ) VALUES (?, ?, ?, ?, ?)
                        """,
                        [
                            domain,
                            record["id"],
                            record["event_time"],
                            record.get("parent_id"),
                            json.dumps(record["payload"]),
                        ],
                    )
                conn.commit()
                logger.info("records_written", domain=domain, count=len(records))
                return len(records)

        except Exception as e:
            logger.error("write_records_failed", domain=domain, error=str(e))
            raise StorageError(f"Failed to write {domain} records: {e}") from e

    def read_records(
        self,
        domain: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        parent_id: Optional[str] = None,
        after: Optional[tuple[datetime, str]] = None,
        limit: int = 500,
    ) -> list[dict]:
        """Read a page of record payloads ordered by (event time, id)."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT payload
                    FROM records
                    WHERE domain = ?
                """
                params: list = [domain]

                if start is not None:
                    query += " AND event_time >= ?"
                    params.append(start)

                if end is not None:
                    query += " AND event_time <= ?"
                    params.append(end)

                if parent_id is not None:
                    query += " AND parent_id = ?"
                    params.append(parent_id)

                if after is not None:
                    # Keyset cursor: rows strictly after (event_time, record_id)
                    query += " AND (event_time > ? OR (event_time = ? AND record_id > ?))"
                    params.extend([after[0], after[0], after[1]])

                query += " ORDER BY event_time ASC, record_id ASC LIMIT ?"
                params.append(limit)

                result = conn.execute(query, params).fetchall()
                payloads = [json.loads(row[0]) for row in result]

                logger.debug("records_read", domain=domain, count=len(payloads))
                return payloads

        except Exception as e:
            logger.error("read_records_failed", domain=domain, error=str(e))
            raise StorageError(f"Failed to read {domain} records: {e}") from e

    def read_record(self, domain: str, record_id: str) -> Optional[dict]:
        """Read one record payload by id."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT payload FROM records WHERE domain = ? AND record_id = ? LIMIT 1",
                    [domain, record_id],
                ).fetchone()
                return json.loads(row[0]) if row else None

        except Exception as e:
            logger.error("read_record_failed", domain=domain, record_id=record_id, error=str(e))
            raise StorageError(f"Failed to read {domain} record: {e}") from e

    # =========================================================================
    # Documents
    # =========================================================================

    def insert_document(
        self,
        collection: str,
        document: dict,
        expires_at: Optional[datetime] = None,
        doc_id: Optional[str] = None,
        commit_gate=None,
    ) -> Optional[str]:
        """Append one document; None if the commit gate was closed first."""
        doc_id = doc_id or str(uuid4())

        try:
            with self._get_connection() as conn:
                conn.begin()
                conn.execute(
                    """
                    INSERT INTO documents (
                        doc_id, collection, created_at, expires_at, payload
                    ) VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        doc_id,
                        collection,
                        utc_now(),
                        expires_at,
                        json.dumps(document),
                    ],
                )
                if commit_gate is not None and not commit_gate.try_commit():
                    conn.rollback()
                    logger.warning("document_insert_abandoned", collection=collection)
                    return None
                conn.commit()
                logger.debug("document_inserted", collection=collection, doc_id=doc_id)
                return doc_id

        except Exception as e:
            logger.error("insert_document_failed", collection=collection, error=str(e))
            raise StorageError(f"Failed to insert {collection} document: {e}") from e

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        """Read one document by id."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    """
                    SELECT doc_id, created_at, expires_at, payload
                    FROM documents
                    WHERE collection = ? AND doc_id = ?
                    LIMIT 1
                    """,
                    [collection, doc_id],
                ).fetchone()

                if not row:
                    return None
                return self._document_from_row(row)

        except Exception as e:
            logger.error("get_document_failed", collection=collection, doc_id=doc_id, error=str(e))
            raise StorageError(f"Failed to read {collection} document: {e}") from e

    def query_documents(
        self,
        collection: str,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> list[dict]:
        """Read documents of a collection, newest first."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT doc_id, created_at, expires_at, payload
                    FROM documents
                    WHERE collection = ?
                """
                params: list = [collection]

                if since is not None:
                    query += " AND created_at >= ?"
                    params.append(since)

                query += " ORDER BY created_at DESC LIMIT ?"
                params.append(limit)

                rows = conn.execute(query, params).fetchall()
                documents = [self._document_from_row(row) for row in rows]

                logger.debug("documents_read", collection=collection, count=len(documents))
                return documents

        except Exception as e:
            logger.error("query_documents_failed", collection=collection, error=str(e))
            raise StorageError(f"Failed to query {collection} documents: {e}") from e

    @staticmethod
    def _document_from_row(row) -> dict:
        document = json.loads(row[3])
        document["_id"] = row[0]
        document["_created_at"] = row[1].isoformat() if row[1] else None
        document["_expires_at"] = row[2].isoformat() if row[2] else None
        return document

    # =========================================================================
    # Snapshots
    # =========================================================================

    def insert_snapshots(self, snapshots: list[dict], commit_gate=None) -> int:
        """
        Insert a snapshot batch atomically; existing keys are left untouched.

        Returns 0 without writing if the commit gate was closed first.
        """
        if not snapshots:
            return 0

        try:
            with self._get_connection() as conn:
                conn.begin()
                before = conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]
                for snapshot in snapshots:
                    conn.execute(
                        """
                        INSERT OR IGNORE INTO snapshots (
                            snapshot_date, domain, period_type, payload, created_at, expires_at
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        [
                            snapshot["snapshot_date"],
                            snapshot["domain"],
                            snapshot.get("period_type", "daily"),
                            json.dumps(snapshot["data"]),
                            snapshot["created_at"],
                            snapshot.get("expires_at"),
                        ],
                    )
                after = conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]
                if commit_gate is not None and not commit_gate.try_commit():
                    conn.rollback()
                    logger.warning("snapshot_insert_abandoned", requested=len(snapshots))
                    return 0
                conn.commit()

                inserted = after - before
                logger.info(
                    "snapshots_inserted",
                    requested=len(snapshots),
                    inserted=inserted,
                )
                return inserted

        except Exception as e:
            logger.error("insert_snapshots_failed", error=str(e))
            raise StorageError(f"Failed to insert snapshots: {e}") from e

    def read_snapshots(
        self,
        domain: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[dict]:
        """Read snapshots ordered by date then domain."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT snapshot_date, domain, period_type, payload, created_at, expires_at
                    FROM snapshots
                    WHERE 1=1
                """
                params: list = []

                if domain:
                    query += " AND domain = ?"
                    params.append(domain)

                if start is not None:
                    query += " AND snapshot_date >= ?"
                    params.append(start)

                if end is not None:
                    query += " AND snapshot_date <= ?"
                    params.append(end)

                query += " ORDER BY snapshot_date ASC, domain ASC"

                rows = conn.execute(query, params).fetchall()
                snapshots = [
                    {
                        "snapshot_date": row[0],
                        "domain": row[1],
                        "period_type": row[2],
                        "data": json.loads(row[3]),
                        "created_at": row[4],
                        "expires_at": row[5],
                    }
                    for row in rows
                ]

                logger.debug("snapshots_read", count=len(snapshots))
                return snapshots

        except Exception as e:
            logger.error("read_snapshots_failed", error=str(e))
            raise StorageError(f"Failed to read snapshots: {e}") from e

    # =========================================================================
    # Maintenance
    # =========================================================================

    def purge_expired(self, now: datetime) -> int:
        """Delete expired documents and snapshots."""
        try:
            with self._get_connection() as conn:
                conn.begin()
                docs = conn.execute(
                    "SELECT COUNT(*) FROM documents WHERE expires_at IS NOT NULL AND expires_at < ?",
                    [now],
                ).fetchone()[0]
                snaps = conn.execute(
                    "SELECT COUNT(*) FROM snapshots WHERE expires_at IS NOT NULL AND expires_at < ?",
                    [now],
                ).fetchone()[0]
                conn.execute(
                    "DELETE FROM documents WHERE expires_at IS NOT NULL AND expires_at < ?",
                    [now],
                )
                conn.execute(
                    "DELETE FROM snapshots WHERE expires_at IS NOT NULL AND expires_at < ?",
                    [now],
                )
                conn.commit()

                logger.info("expired_data_purged", documents=docs, snapshots=snaps)
                return docs + snaps

        except Exception as e:
            logger.error("purge_expired_failed", error=str(e))
            raise StorageError(f"Failed to purge expired data: {e}") from e

    def health_check(self) -> bool:
        """Run a trivial query against the database."""
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
                return True

        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            raise StorageError(f"Health check failed: {e}") from e
