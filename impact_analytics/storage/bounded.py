"""
Time-bounded collaborator calls.

Every fetch and persist goes through run_bounded so that a slow or failing
backend surfaces as DataFetchError instead of hanging a request or a
scheduler tick.

A worker thread cannot be stopped once it runs, so writes take a CommitGate:
the backend asks the gate before committing, and run_bounded closes it on
timeout. Whichever happens first wins, so a write reported as timed out
never lands later.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from functools import lru_cache
from typing import Any, Callable, Optional

import structlog

from impact_analytics.config import get_settings
from impact_analytics.errors import DataFetchError

from .duckdb_storage import StorageError

logger = structlog.get_logger()


class CommitGate:
    """One-shot decision between committing a write and abandoning it."""

    def __init__(self):
        self._lock = threading.Lock()
        self._decision: Optional[str] = None

    def _decide(self, decision: str) -> bool:
        with self._lock:
            if self._decision is None:
                self._decision = decision
            return self._decision == decision

    def try_commit(self) -> bool:
        """Called by the backend right before commit; False means roll back."""
        return self._decide("commit")

    def abandon(self) -> bool:
        """Called on timeout; False means the commit is already under way."""
        return self._decide("abandon")

    @property
    def abandoned(self) -> bool:
        return self._decision == "abandon"


@lru_cache
def get_executor() -> ThreadPoolExecutor:
    """Shared worker pool for collaborator calls."""
    settings = get_settings()
    return ThreadPoolExecutor(
        max_workers=settings.collaborator_max_workers,
        thread_name_prefix="collaborator",
    )


def run_bounded(
    fn: Callable[..., Any],
    *args,
    timeout: Optional[float] = None,
    operation: str = "collaborator_call",
    commit_gate: Optional[CommitGate] = None,
    **kwargs,
) -> Any:
    """
    Run fn on the shared pool and wait at most `timeout` seconds.

    Args:
        fn: Callable to run
        timeout: Seconds to wait; defaults to COLLABORATOR_TIMEOUT_SECONDS
        operation: Name used in logs and error messages
        commit_gate: For writes; passed to fn as `commit_gate` and closed on
            timeout so the write rolls back instead of landing late

    Returns:
        Whatever fn returns

    Raises:
        DataFetchError: On timeout or on a StorageError raised by fn
    """
    if timeout is None:
        timeout = get_settings().collaborator_timeout_seconds
    if commit_gate is not None:
        kwargs["commit_gate"] = commit_gate

    future = get_executor().submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        if commit_gate is not None and not commit_gate.abandon():
            # The write reached its commit before the deadline; report its outcome
            logger.info("collaborator_commit_in_flight", operation=operation)
            return _settle(future, operation)
        logger.warning("collaborator_call_timed_out", operation=operation, timeout=timeout)
        raise DataFetchError(f"{operation} timed out after {timeout}s") from e
    except StorageError as e:
        logger.warning("collaborator_call_failed", operation=operation, error=str(e))
        raise DataFetchError(f"{operation} failed: {e}") from e


def _settle(future, operation: str) -> Any:
    try:
        return future.result()
    except StorageError as e:
        logger.warning("collaborator_call_failed", operation=operation, error=str(e))
        raise DataFetchError(f"{operation} failed: {e}") from e
