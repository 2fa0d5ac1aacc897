"""
Event Status Module - Imperative Shell (I/O Operations)

Async use case resolving a group's event status, plus the lookup adapters
backed by the database and Redis.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ...observability.integration import TrackedOperation
from .contracts import (
    Clock,
    EventRecord,
    EventStatus,
    GroupId,
    LastEventStoreConfig,
    LoadLastEventRepository,
)
from .core import classify_event_status
from .observability import EventStatusObservabilityCollector, tracer

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckLastEventStatusService:
    """Resolves the lifecycle status of a group's most recent event."""

    def __init__(
        self,
        repository: LoadLastEventRepository,
        clock: Optional[Clock] = None,
        collector: Optional[EventStatusObservabilityCollector] = None,
    ):
        self.repository = repository
        self.clock = clock or utc_now
        self.collector = collector or EventStatusObservabilityCollector()

    async def perform(self, group_id: GroupId) -> EventStatus:
        """
        Load the latest event of the group and classify it.

        Lookup errors propagate unchanged to the caller.
        """
        with TrackedOperation(
            "event_status.perform",
            tracer=tracer,
            attributes={"group.id": group_id},
        ) as operation:
            event = await self.repository.load_last_event(group_id)
            status = classify_event_status(event, self.clock())
            operation.add_attribute("event_status.status", status.value)

        logger.debug(f"Group {group_id} last event status: {status.value}")
        self.collector.track_status_check(status, operation.duration_ms)
        return status


class SqlLastEventRepository:
    """Read-only lookup of the latest event row of a group."""

    def __init__(self, db_session: AsyncSession, config: Optional[LastEventStoreConfig] = None):
        self.db = db_session
        self.config = config or LastEventStoreConfig()
        self._query = text(f"""
            SELECT end_date, review_duration_in_hours
            FROM {self.config.table_name}
            WHERE group_id = :group_id
            ORDER BY end_date DESC
            LIMIT 1
        """)

    async def load_last_event(self, group_id: GroupId) -> Optional[EventRecord]:
        result = await self.db.execute(self._query, {"group_id": group_id})
        row = result.mappings().first()

        if row is None:
            return None

        return EventRecord.from_row(row)


class CachedLastEventRepository:
    """
    Read-through Redis cache in front of another lookup repository.

    Groups without an event are cached as JSON null. Nothing is cached when
    the inner repository raises.
    """

    def __init__(
        self,
        inner: LoadLastEventRepository,
        redis_client: redis.Redis,
        config: Optional[LastEventStoreConfig] = None,
    ):
        self.inner = inner
        self.redis = redis_client
        self.config = config or LastEventStoreConfig()

    def _get_cache_key(self, group_id: GroupId) -> str:
        return f"{self.config.redis_key_prefix}:{group_id}"

    async def load_last_event(self, group_id: GroupId) -> Optional[EventRecord]:
        key = self._get_cache_key(group_id)
        cached = await self.redis.get(key)

        if cached is not None:
            try:
                payload = json.loads(cached)
                return None if payload is None else EventRecord.from_row(payload)
            except ValueError as e:
                logger.warning(f"Discarding undecodable cache entry {key}: {e}")

        event = await self.inner.load_last_event(group_id)

        payload = None if event is None else event.to_payload()
        await self.redis.set(key, json.dumps(payload), ex=self.config.cache_ttl_seconds)

        return event
