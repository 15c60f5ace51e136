"""
Error taxonomy for the analytics engine.

Every error raised across a collaborator or API boundary derives from
AnalyticsError and carries the HTTP status the API layer renders it with.
"""


class AnalyticsError(Exception):
    """Base exception for all analytics engine failures."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    @property
    def error_type(self) -> str:
        return self.__class__.__name__


class Unauthenticated(AnalyticsError):
    """No identity could be established for the caller."""

    status_code = 401


class NotAuthorized(AnalyticsError):
    """Caller's role is not in the allowed set. Never retried."""

    status_code = 403


class NotFound(AnalyticsError):
    """Requested report or entity is absent."""

    status_code = 404


class DataFetchError(AnalyticsError):
    """
    A collaborator call (fetch or persist) failed or timed out.

    Recoverable: scheduled runs log it and defer to the next tick.
    """

    status_code = 503
    retryable = True


class ComputationError(AnalyticsError):
    """Invalid input rejected before any fetch occurs (e.g. start > end)."""

    status_code = 422
