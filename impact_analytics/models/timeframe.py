"""
Query-scoping models: the time window and the attribute filters applied to a
domain's records before aggregation.
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from impact_analytics.errors import ComputationError
from impact_analytics.models.enums import Granularity


# Smallest step between stored timestamps
RESOLUTION = timedelta(microseconds=1)


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(dt_timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: datetime) -> datetime:
    """Normalize a timestamp to naive UTC, the engine's internal convention."""
    if value.tzinfo is None:
        return value
    return value.astimezone(dt_timezone.utc).replace(tzinfo=None)


class TimeFrame(BaseModel):
    """
    Inclusive time window plus the bucket granularity used to group it.

    Attributes:
        start: Window start (inclusive)
        end: Window end (inclusive)
        granularity: Bucket width for grouped series
        timezone: Optional IANA zone whose local midnight/week/month
            boundaries define buckets; naive timestamps are read as UTC
    """

    start: datetime = Field(description="Window start (inclusive)")
    end: datetime = Field(description="Window end (inclusive)")
    granularity: Granularity = Field(
        default=Granularity.DAILY, description="Bucket width for grouped series"
    )
    timezone: Optional[str] = Field(
        default=None, description="IANA timezone for bucket boundaries"
    )

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v: datetime) -> datetime:
        """Store bounds as naive UTC."""
        return as_utc_naive(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject unknown IANA zone names."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "TimeFrame":
        """Ensure start <= end."""
        if self.start > self.end:
            raise ValueError(
                f"start ({self.start.isoformat()}) must not be after end ({self.end.isoformat()})"
            )
        return self

    @property
    def duration(self):
        return self.end - self.start

    def previous(self) -> "TimeFrame":
        """
        The immediately preceding window of equal length.

        Bounds are inclusive, so the window ends one tick before `start`; a
        record stamped exactly at `start` belongs to this window only.
        """
        end = self.start - RESOLUTION
        return TimeFrame(
            start=end - self.duration,
            end=end,
            granularity=self.granularity,
            timezone=self.timezone,
        )

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end

    @classmethod
    def from_bounds(
        cls,
        start: datetime,
        end: datetime,
        granularity: Granularity = Granularity.DAILY,
        timezone: Optional[str] = None,
    ) -> "TimeFrame":
        """
        Build a TimeFrame, converting validation failures to ComputationError.

        Raises:
            ComputationError: If start > end or the timezone is unknown
        """
        try:
            return cls(start=start, end=end, granularity=granularity, timezone=timezone)
        except ValidationError as e:
            raise ComputationError(f"Invalid timeframe: {e.errors()[0]['msg']}") from e


def ensure_timeframe(timeframe: TimeFrame) -> TimeFrame:
    """Reject inverted windows before any collaborator is called."""
    if timeframe.start > timeframe.end:
        raise ComputationError("Invalid timeframe: start must not be after end")
    return timeframe


class DataFilters(BaseModel):
    """
    Optional predicate set applied to a domain's records.

    Each field only applies to the domains that carry the attribute it
    constrains; unset fields never filter anything.
    """

    project_types: Optional[list[str]] = Field(default=None, description="Allowed project types")
    project_statuses: Optional[list[str]] = Field(
        default=None, description="Allowed project statuses"
    )
    regions: Optional[list[str]] = Field(default=None, description="Allowed location regions")
    user_roles: Optional[list[str]] = Field(default=None, description="Allowed user roles")
    categories: Optional[list[str]] = Field(
        default=None, description="Allowed transaction categories"
    )
    min_value: Optional[float] = Field(default=None, description="Minimum transaction amount")
    max_value: Optional[float] = Field(default=None, description="Maximum transaction amount")
    min_impact: Optional[float] = Field(
        default=None, description="Minimum carbon impact of a progress update"
    )

    @model_validator(mode="after")
    def validate_value_range(self) -> "DataFilters":
        """Ensure min_value <= max_value when both are set."""
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError("min_value must not exceed max_value")
        return self

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())
