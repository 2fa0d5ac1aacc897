"""
Event Status Module - Functional Core (Pure Logic)

Pure functions mapping an optional event snapshot and an instant to a status.
All functions are deterministic and side-effect free.
"""

from datetime import datetime, timedelta
from typing import Optional

from .contracts import EventRecord, EventStatus


def calculate_review_end(end_date: datetime, review_duration_in_hours: float) -> datetime:
    """
    Pure function: instant at which the review window closes.

    Args:
        end_date: When the event's active window ends
        review_duration_in_hours: Length of the review window

    Returns:
        end_date shifted by the review duration
    """
    return end_date + timedelta(hours=review_duration_in_hours)


def classify_event_status(event: Optional[EventRecord], now: datetime) -> EventStatus:
    """
    Pure function: classify an event snapshot relative to now.

    Both boundaries are inclusive, so every instant maps to exactly one status.

    Args:
        event: Latest event of the group, None when the group has none
        now: Instant the classification is made for

    Returns:
        ACTIVE until end_date, IN_REVIEW until the review window closes,
        DONE afterwards or when there is no event
    """
    if event is None:
        return EventStatus.DONE

    if event.end_date >= now:
        return EventStatus.ACTIVE

    try:
        review_end = calculate_review_end(event.end_date, event.review_duration_in_hours)
    except OverflowError:
        # Review window reaches past datetime.max, so it cannot have closed yet
        return EventStatus.IN_REVIEW

    if review_end >= now:
        return EventStatus.IN_REVIEW
    return EventStatus.DONE
