"""
Event status module: classifies a group's latest event as active, in review or done.

This module provides:
- Pure classification of an optional event snapshot against an instant
- An async use case that looks up the latest event and classifies it
- Database and Redis adapters for the last-event lookup
"""

from .contracts import (
    CheckLastEventStatus,
    Clock,
    EventRecord,
    EventStatus,
    GroupId,
    LastEventStoreConfig,
    LoadLastEventRepository,
)
from .core import calculate_review_end, classify_event_status
from .shell import (
    CachedLastEventRepository,
    CheckLastEventStatusService,
    SqlLastEventRepository,
)

__all__ = [
    # Core functions
    "calculate_review_end",
    "classify_event_status",
    # Contracts
    "CheckLastEventStatus",
    "Clock",
    "EventRecord",
    "EventStatus",
    "GroupId",
    "LastEventStoreConfig",
    "LoadLastEventRepository",
    # Shell operations
    "CachedLastEventRepository",
    "CheckLastEventStatusService",
    "SqlLastEventRepository",
]
