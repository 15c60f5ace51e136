"""
Record Store adapter.

Reads operational records from the storage backend in bounded chunks,
validates them into their pydantic models and applies DataFilters the same
way for every domain. Reads are pure; the only write path is ingestion.
"""

from typing import Optional

import structlog
from pydantic import BaseModel

from impact_analytics.config import get_settings
from impact_analytics.models.enums import RecordDomain
from impact_analytics.models.records import (
    RECORD_MODELS,
    ProgressUpdate,
    Project,
    Transaction,
    User,
    parent_key,
)
from impact_analytics.models.timeframe import DataFilters, TimeFrame, ensure_timeframe

from .base import StorageBackend
from .bounded import run_bounded

logger = structlog.get_logger()


def _value(v) -> Optional[str]:
    return getattr(v, "value", v)


def apply_filters(
    domain: RecordDomain,
    records: list,
    filters: Optional[DataFilters],
    projects_by_id: Optional[dict[str, Project]] = None,
) -> list:
    """
    Keep the records that satisfy every filter applicable to the domain.

    Progress updates are filtered on type and region through their owning
    project, looked up in `projects_by_id`; an update whose project is
    unknown fails any type or region filter.
    """
    if filters is None or filters.is_empty():
        return list(records)

    def keep(record) -> bool:
        if domain == RecordDomain.PROJECTS:
            return _project_matches(record, filters)
        if domain == RecordDomain.USERS:
            return not filters.user_roles or _value(record.role) in filters.user_roles
        if domain == RecordDomain.TRANSACTIONS:
            return _transaction_matches(record, filters)
        if domain == RecordDomain.PROGRESS_UPDATES:
            return _update_matches(record, filters, projects_by_id or {})
        return True

    return [r for r in records if keep(r)]


def _project_matches(project: Project, filters: DataFilters) -> bool:
    if filters.project_types and project.project_type not in filters.project_types:
        return False
    if filters.project_statuses and _value(project.status) not in filters.project_statuses:
        return False
    if filters.regions and project.location.region not in filters.regions:
        return False
    return True


def _transaction_matches(txn: Transaction, filters: DataFilters) -> bool:
    if filters.min_value is not None and txn.total_amount < filters.min_value:
        return False
    if filters.max_value is not None and txn.total_amount > filters.max_value:
        return False
    if filters.categories and txn.category not in filters.categories:
        return False
    return True


def _update_matches(
    update: ProgressUpdate, filters: DataFilters, projects_by_id: dict[str, Project]
) -> bool:
    if filters.min_impact is not None and update.carbon_impact_to_date < filters.min_impact:
        return False
    if filters.project_types or filters.regions:
        project = projects_by_id.get(update.project_id)
        if project is None:
            return False
        if filters.project_types and project.project_type not in filters.project_types:
            return False
        if filters.regions and project.location.region not in filters.regions:
            return False
    return True


class RecordStore:
    """
    Chunked, time-bounded reads over the operational record domains.

    Args:
        storage: Storage backend holding the records
        chunk_size: Rows per backend read (FETCH_CHUNK_SIZE)
        timeout: Seconds allowed per backend call
    """

    def __init__(
        self,
        storage: StorageBackend,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.storage = storage
        self.chunk_size = chunk_size or settings.fetch_chunk_size
        self.timeout = timeout or settings.collaborator_timeout_seconds

    def fetch(
        self,
        domain: RecordDomain,
        timeframe: Optional[TimeFrame] = None,
        filters: Optional[DataFilters] = None,
    ) -> list:
        """
        Fetch a domain's records, optionally bounded by timeframe and filters.

        Records are returned in domain-timestamp order. An empty list is a
        valid result.

        Raises:
            ComputationError: If the timeframe is inverted
            DataFetchError: If any chunk read fails or times out
        """
        domain = RecordDomain(domain)
        start = end = None
        if timeframe is not None:
            ensure_timeframe(timeframe)
            start, end = timeframe.start, timeframe.end

        records = self._read_chunked(domain, start=start, end=end)

        projects_by_id = None
        if (
            domain == RecordDomain.PROGRESS_UPDATES
            and filters is not None
            and (filters.project_types or filters.regions)
        ):
            projects_by_id = self._owning_projects(records)

        filtered = apply_filters(domain, records, filters, projects_by_id)
        logger.debug(
            "records_fetched",
            domain=domain.value,
            fetched=len(records),
            kept=len(filtered),
        )
        return filtered

    def fetch_for_parent(self, domain: RecordDomain, parent_id: str) -> list:
        """
        Fetch the records under a parent key: updates or alerts of a project,
        transactions of a buyer, projects of a creator, a user by external id.
        """
        domain = RecordDomain(domain)
        return self._read_chunked(domain, parent_id=parent_id)

    def get(self, domain: RecordDomain, record_id: str) -> Optional[BaseModel]:
        """Fetch one record by id, or None if absent."""
        domain = RecordDomain(domain)
        payload = run_bounded(
            self.storage.read_record,
            domain.value,
            record_id,
            timeout=self.timeout,
            operation=f"get_{domain.value}",
        )
        if payload is None:
            return None
        return RECORD_MODELS[domain].model_validate(payload)

    def user_by_external_id(self, external_id: str) -> Optional[User]:
        users = self.fetch_for_parent(RecordDomain.USERS, external_id)
        return users[0] if users else None

    def write(self, domain: RecordDomain, records: list[BaseModel]) -> int:
        """
        Load operational records (ingestion path, not used by the engine).

        Raises:
            DataFetchError: If the write fails or times out
        """
        domain = RecordDomain(domain)
        rows = [
            {
                "id": record.id,
                "event_time": record.timestamp,
                "parent_id": parent_key(domain, record),
                "payload": record.model_dump(mode="json"),
            }
            for record in records
        ]
        return run_bounded(
            self.storage.write_records,
            domain.value,
            rows,
            timeout=self.timeout,
            operation=f"write_{domain.value}",
        )

    def _read_chunked(self, domain: RecordDomain, **bounds) -> list:
        model = RECORD_MODELS[domain]
        records = []
        after = None
        while True:
            chunk = run_bounded(
                self.storage.read_records,
                domain.value,
                after=after,
                limit=self.chunk_size,
                timeout=self.timeout,
                operation=f"fetch_{domain.value}",
                **bounds,
            )
            page = [model.model_validate(payload) for payload in chunk]
            records.extend(page)
            if len(chunk) < self.chunk_size:
                break
            # Rows written mid-fetch cannot shift a keyset cursor
            after = (page[-1].timestamp, page[-1].id)
        return records

    def _owning_projects(self, updates: list[ProgressUpdate]) -> dict[str, Project]:
        projects = {}
        for project_id in sorted({u.project_id for u in updates}):
            project = self.get(RecordDomain.PROJECTS, project_id)
            if project is not None:
                projects[project_id] = project
        return projects
