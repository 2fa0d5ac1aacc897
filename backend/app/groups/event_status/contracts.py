"""
Event Status Module - Type Definitions and Contracts

Immutable data structures for classifying the lifecycle of a group's latest event.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

GroupId = str
Clock = Callable[[], datetime]

_SQL_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class EventStatus(Enum):
    """Lifecycle states of a group event."""

    ACTIVE = "active"
    IN_REVIEW = "inReview"
    DONE = "done"


@dataclass(frozen=True)
class EventRecord:
    """
    Immutable snapshot of a group's most recent event.

    A naive end_date is taken to be UTC, so records always compare against
    the timezone-aware clock.
    """

    end_date: datetime
    review_duration_in_hours: float

    def __post_init__(self):
        if not math.isfinite(self.review_duration_in_hours) or self.review_duration_in_hours < 0:
            raise ValueError(
                f"review_duration_in_hours must be finite and non-negative, got {self.review_duration_in_hours}"
            )
        if self.end_date.tzinfo is None:
            object.__setattr__(self, 'end_date', self.end_date.replace(tzinfo=timezone.utc))

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EventRecord":
        """
        Build a record from a storage row or a decoded cache payload.

        Args:
            row: Mapping with end_date (datetime or ISO-8601 string) and
                review_duration_in_hours

        Returns:
            EventRecord

        Raises:
            ValueError: If the row is not a mapping, or a required field is
                missing or malformed
        """
        if not isinstance(row, Mapping):
            raise ValueError(f"Event row must be a mapping, got {type(row).__name__}")

        try:
            end_date = row["end_date"]
            duration = row["review_duration_in_hours"]
        except KeyError as e:
            raise ValueError(f"Event row missing field: {e.args[0]}") from e

        if isinstance(end_date, str):
            end_date = datetime.fromisoformat(end_date)
        if not isinstance(end_date, datetime):
            raise ValueError(f"Invalid end_date: {end_date!r}")

        try:
            duration = float(duration)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid review_duration_in_hours: {duration!r}") from e

        return cls(end_date=end_date, review_duration_in_hours=duration)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe representation, inverse of from_row."""
        return {
            "end_date": self.end_date.isoformat(),
            "review_duration_in_hours": self.review_duration_in_hours,
        }


@dataclass(frozen=True)
class LastEventStoreConfig:
    """Settings for the last-event lookup adapters."""

    table_name: str = "events"
    cache_ttl_seconds: int = 30
    redis_key_prefix: str = "event_status:last_event"

    def __post_init__(self):
        if not _SQL_IDENTIFIER.match(self.table_name):
            raise ValueError(f"Invalid table name: {self.table_name!r}")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive")


class LoadLastEventRepository(Protocol):
    """Contract for fetching the most recent event of a group."""

    async def load_last_event(self, group_id: GroupId) -> Optional[EventRecord]:
        """Return the group's latest event, or None when it has none."""
        ...


class CheckLastEventStatus(Protocol):
    """Contract exposed to callers of the status check."""

    async def perform(self, group_id: GroupId) -> EventStatus:
        """Resolve the lifecycle status of the group's latest event."""
        ...
