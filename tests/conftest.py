"""
Pytest configuration and shared fixtures for the impact analytics test suite.

Provides record factories, an in-memory storage backend, environment
isolation and reusable fixtures across unit, integration, golden and
property-based tests.
"""

import os
import tempfile
import time
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import uuid4

import pytest

# Set testing environment BEFORE importing the app.
# One DuckDB file per test process; :memory: gives a database per connection,
# which breaks the thread-local connections.
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"impact_analytics_test_{os.getpid()}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["LOG_FORMAT"] = "console"


from impact_analytics.engine.constants import HeuristicConstants
from impact_analytics.models.enums import (
    MilestoneStatus,
    ProjectStatus,
    ProjectType,
    RecordDomain,
    Severity,
    UserRole,
)
from impact_analytics.models.records import (
    Alert,
    Location,
    Milestone,
    ProgressUpdate,
    Project,
    Transaction,
    User,
)
from impact_analytics.models.timeframe import utc_now
from impact_analytics.storage.base import StorageBackend
from impact_analytics.storage.duckdb_storage import StorageError
from impact_analytics.storage.persistence import Persistence
from impact_analytics.storage.record_store import RecordStore

# Fixed clock shared by the engine tests
NOW = datetime(2024, 3, 15, 12, 0, 0)


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


def make_project(
    project_type: str = ProjectType.REFORESTATION.value,
    status: ProjectStatus = ProjectStatus.ACTIVE,
    created_at: Optional[datetime] = None,
    country: str = "Kenya",
    region: str = "Coast",
    **overrides,
) -> Project:
    """Factory function for creating test Project objects."""
    created = created_at or NOW - timedelta(days=60)
    defaults = dict(
        id=str(uuid4()),
        creator_id="creator-1",
        title="Coastal Mangrove Restoration",
        project_type=project_type,
        status=status,
        location=Location(country=country, region=region),
        target_carbon_impact=1000.0,
        funding_required=50000.0,
        credits_generated=200.0,
        progress_percentage=40.0,
        estimated_completion_date=created + timedelta(days=365),
        created_at=created,
    )
    defaults.update(overrides)
    return Project(**defaults)


def make_milestone(
    planned_date: datetime,
    status: MilestoneStatus = MilestoneStatus.PENDING,
    **overrides,
) -> Milestone:
    defaults = dict(title="Planting phase", planned_date=planned_date, status=status)
    defaults.update(overrides)
    return Milestone(**defaults)


def make_user(
    external_id: Optional[str] = None,
    role: UserRole = UserRole.CREDIT_BUYER,
    created_at: Optional[datetime] = None,
    last_login_at: Optional[datetime] = None,
    **overrides,
) -> User:
    """Factory function for creating test User objects."""
    defaults = dict(
        id=str(uuid4()),
        external_id=external_id or f"user-{uuid4().hex[:8]}",
        role=role,
        country="Kenya",
        organization_type="corporation",
        last_login_at=last_login_at,
        created_at=created_at or NOW - timedelta(days=90),
    )
    defaults.update(overrides)
    return User(**defaults)


def make_transaction(
    buyer_id: str = "buyer-1",
    project_id: Optional[str] = None,
    credit_amount: float = 100.0,
    unit_price: float = 20.0,
    created_at: Optional[datetime] = None,
    **overrides,
) -> Transaction:
    """Factory function for creating test Transaction objects."""
    total = credit_amount * unit_price
    defaults = dict(
        id=str(uuid4()),
        buyer_id=buyer_id,
        project_id=project_id,
        credit_amount=credit_amount,
        unit_price=unit_price,
        total_amount=total,
        platform_fee=total * 0.05,
        category="nature_based",
        created_at=created_at or NOW - timedelta(days=5),
    )
    defaults.update(overrides)
    return Transaction(**defaults)


def make_update(
    project_id: str,
    reporting_date: Optional[datetime] = None,
    progress_percentage: float = 50.0,
    **overrides,
) -> ProgressUpdate:
    """Factory function for creating test ProgressUpdate objects."""
    reported = reporting_date or NOW - timedelta(days=10)
    defaults = dict(
        id=str(uuid4()),
        project_id=project_id,
        description="Quarterly field report covering planting, survival counts and soil tests",
        progress_percentage=progress_percentage,
        photos=["site.jpg"],
        reporting_date=reported,
        submitted_at=reported,
        carbon_impact_to_date=120.0,
        trees_planted=400.0,
        energy_generated=0.0,
        is_verified=True,
        submitted_on_time=True,
        created_at=reported,
    )
    defaults.update(overrides)
    return ProgressUpdate(**defaults)


def make_alert(
    severity: Severity = Severity.MEDIUM,
    created_at: Optional[datetime] = None,
    is_resolved: bool = False,
    **overrides,
) -> Alert:
    defaults = dict(
        id=str(uuid4()),
        project_id="project-1",
        alert_type="milestone_overdue",
        severity=severity,
        message="Milestone overdue",
        is_resolved=is_resolved,
        created_at=created_at or NOW - timedelta(hours=2),
    )
    defaults.update(overrides)
    return Alert(**defaults)


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------


class MockStorage(StorageBackend):
    """
    In-memory StorageBackend for unit tests.

    Any method named in `failing` raises StorageError, and any method named
    in `delays` sleeps that many seconds first, which lets tests exercise
    the DataFetchError and timeout paths without a database.
    """

    def __init__(self):
        self._records: dict[tuple[str, str], dict] = {}
        self._documents: list[dict] = []
        self._snapshots: dict[tuple[date, str], dict] = {}
        self.failing: set[str] = set()
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.delays:
            time.sleep(self.delays[method])
        if method in self.failing:
            raise StorageError(f"{method} unavailable")

    # --- Records ---
    def write_records(self, domain, records):
        self._enter("write_records")
        for record in records:
            self._records[(domain, record["id"])] = dict(record)
        return len(records)

    def read_records(self, domain, start=None, end=None, parent_id=None, after=None, limit=500):
        self._enter("read_records")
        rows = [
            row for (d, _), row in self._records.items()
            if d == domain
            and (start is None or row["event_time"] >= start)
            and (end is None or row["event_time"] <= end)
            and (parent_id is None or row["parent_id"] == parent_id)
            and (after is None or (row["event_time"], row["id"]) > after)
        ]
        rows.sort(key=lambda r: (r["event_time"], r["id"]))
        return [row["payload"] for row in rows[:limit]]

    def read_record(self, domain, record_id):
        self._enter("read_record")
        row = self._records.get((domain, record_id))
        return row["payload"] if row else None

    # --- Documents ---
    def insert_document(self, collection, document, expires_at=None, doc_id=None, commit_gate=None):
        self._enter("insert_document")
        if commit_gate is not None and not commit_gate.try_commit():
            return None
        doc_id = doc_id or str(uuid4())
        self._documents.append(
            {
                "collection": collection,
                "id": doc_id,
                "document": dict(document),
                "created_at": utc_now(),
                "expires_at": expires_at,
            }
        )
        return doc_id

    def _with_meta(self, entry):
        document = dict(entry["document"])
        document["_id"] = entry["id"]
        document["_created_at"] = entry["created_at"].isoformat()
        document["_expires_at"] = entry["expires_at"].isoformat() if entry["expires_at"] else None
        return document

    def get_document(self, collection, doc_id):
        self._enter("get_document")
        for entry in self._documents:
            if entry["collection"] == collection and entry["id"] == doc_id:
                return self._with_meta(entry)
        return None

    def query_documents(self, collection, since=None, limit=1000):
        self._enter("query_documents")
        entries = [
            e for e in reversed(self._documents)
            if e["collection"] == collection and (since is None or e["created_at"] >= since)
        ]
        return [self._with_meta(e) for e in entries[:limit]]

    def documents(self, collection):
        """Test helper: stored documents of a collection, oldest first."""
        return [self._with_meta(e) for e in self._documents if e["collection"] == collection]

    # --- Snapshots ---
    def insert_snapshots(self, snapshots, commit_gate=None):
        self._enter("insert_snapshots")
        new = {}
        for snapshot in snapshots:
            key = (snapshot["snapshot_date"], snapshot["domain"])
            if key not in self._snapshots and key not in new:
                new[key] = dict(snapshot)
        if commit_gate is not None and not commit_gate.try_commit():
            return 0
        self._snapshots.update(new)
        return len(new)

    def read_snapshots(self, domain=None, start=None, end=None):
        self._enter("read_snapshots")
        rows = [
            dict(s) for (day, d), s in self._snapshots.items()
            if (domain is None or d == domain)
            and (start is None or day >= start)
            and (end is None or day <= end)
        ]
        return sorted(rows, key=lambda s: (s["snapshot_date"], s["domain"]))

    # --- Maintenance ---
    def purge_expired(self, now):
        self._enter("purge_expired")
        before = len(self._documents) + len(self._snapshots)
        self._documents = [
            e for e in self._documents if e["expires_at"] is None or e["expires_at"] >= now
        ]
        self._snapshots = {
            k: s for k, s in self._snapshots.items()
            if s["expires_at"] is None or s["expires_at"] >= now
        }
        return before - len(self._documents) - len(self._snapshots)

    def health_check(self):
        self._enter("health_check")
        return True


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def constants():
    return HeuristicConstants()


@pytest.fixture
def mock_storage():
    return MockStorage()


@pytest.fixture
def record_store(mock_storage):
    return RecordStore(mock_storage, chunk_size=3, timeout=5.0)


@pytest.fixture
def persistence(mock_storage):
    return Persistence(mock_storage, timeout=5.0)


@pytest.fixture
def seed(record_store):
    """Write records of one domain into the mock storage."""

    def _seed(domain: RecordDomain, records: list) -> None:
        record_store.write(domain, records)

    return _seed


@pytest.fixture
def platform(seed):
    """
    A small platform: two projects of different types, three users, three
    purchases and two progress updates, all before NOW.
    """
    forest = make_project(
        id="proj-forest",
        project_type=ProjectType.REFORESTATION.value,
        status=ProjectStatus.COMPLETED,
        created_at=NOW - timedelta(days=40),
        completed_at=NOW - timedelta(days=5),
    )
    solar = make_project(
        id="proj-solar",
        project_type=ProjectType.SOLAR.value,
        status=ProjectStatus.ACTIVE,
        created_at=NOW - timedelta(days=20),
        country="India",
        region="Gujarat",
    )
    users = [
        make_user(external_id="creator-1", role=UserRole.PROJECT_CREATOR),
        make_user(external_id="buyer-1", last_login_at=NOW - timedelta(minutes=20)),
        make_user(external_id="admin-1", role=UserRole.ADMIN),
    ]
    transactions = [
        make_transaction(project_id="proj-forest", created_at=NOW - timedelta(days=3)),
        make_transaction(project_id="proj-forest", created_at=NOW - timedelta(days=2)),
        make_transaction(
            project_id="proj-solar", credit_amount=50.0, created_at=NOW - timedelta(days=1)
        ),
    ]
    updates = [
        make_update("proj-forest", reporting_date=NOW - timedelta(days=8), carbon_impact_to_date=300.0),
        make_update("proj-solar", reporting_date=NOW - timedelta(days=4), carbon_impact_to_date=100.0),
    ]
    seed(RecordDomain.PROJECTS, [forest, solar])
    seed(RecordDomain.USERS, users)
    seed(RecordDomain.TRANSACTIONS, transactions)
    seed(RecordDomain.PROGRESS_UPDATES, updates)
    return {
        "projects": [forest, solar],
        "users": users,
        "transactions": transactions,
        "updates": updates,
    }
