"""
Observability integration for the Event Status module.
Collects metrics for status checks against the latest group event.
"""

import logging
from typing import Optional

from opentelemetry import metrics

from ...observability.integration import get_meter, get_tracer
from .contracts import EventStatus

logger = logging.getLogger(__name__)

tracer = get_tracer("groups.event_status")


class EventStatusObservabilityCollector:
    """
    Collects observability metrics for the event status module.
    Recording failures are logged and never reach the status check.
    """

    def __init__(self, meter: Optional[metrics.Meter] = None):
        meter = meter or get_meter("groups.event_status")
        self._checks = meter.create_counter(
            "event_status.checks.total",
            unit="1",
            description="Status checks by resulting status",
        )
        self._duration = meter.create_histogram(
            "event_status.check.duration_ms",
            unit="ms",
            description="Duration of status checks including the event lookup",
        )

    def track_status_check(self, status: EventStatus, duration_ms: float) -> None:
        """
        Track a completed status check.

        Args:
            status: Status returned to the caller
            duration_ms: Time taken by lookup and classification
        """
        try:
            labels = {"status": status.value}
            self._checks.add(1, attributes=labels)
            self._duration.record(duration_ms, attributes=labels)

        except Exception as e:
            logger.error(f"Failed to track status check metrics: {e}")
