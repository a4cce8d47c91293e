"""Batch dispatcher: claim, complete and abandon slices of the event log.

Per event: unclaimed -> claimed(batch) -> processed, or claimed(batch) ->
unclaimed when an unprocessed claim is abandoned. Processed is terminal.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import DateTime, String, delete, false, literal, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from changefeed.outbox.models import EventLogEntry, ExecutionRecord
from changefeed.outbox.repositories import (
    ExecutionRepository,
    InMemoryEventLogRepository,
    InMemoryExecutionRepository,
    StaleBatch,
)
from changefeed.timeutil import utc_now

logger = logging.getLogger(__name__)

MAX_CLAIM_LIMIT = 2000
MAX_BATCH_ID_LENGTH = 100


def _validate_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError("limit must be a positive integer")
    return min(limit, MAX_CLAIM_LIMIT)


def _validate_batch_id(batch_id: str) -> str:
    if not isinstance(batch_id, str):
        raise ValueError("batch_id must be a non-empty string")
    normalized = batch_id.strip()
    if not normalized:
        raise ValueError("batch_id must be a non-empty string")
    if len(normalized) > MAX_BATCH_ID_LENGTH:
        raise ValueError(f"batch_id must be at most {MAX_BATCH_ID_LENGTH} characters")
    return normalized


def _validate_older_than(older_than: timedelta) -> timedelta:
    if not isinstance(older_than, timedelta) or older_than < timedelta(0):
        raise ValueError("older_than must be a non-negative timedelta")
    return older_than


class BatchDispatcher(ABC):
    """Hands out disjoint slices of unprocessed events to consumer batches."""

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    @abstractmethod
    async def claim(self, limit: int, batch_id: str) -> list[EventLogEntry]:
        """Claim up to ``limit`` unclaimed events in ascending id order.

        Concurrent callers never receive the same event; a caller that loses
        a race gets a smaller or empty list.
        """

    @abstractmethod
    async def mark_processed(self, batch_id: str) -> int:
        """Mark every unprocessed claim of ``batch_id`` processed; returns the count."""

    @abstractmethod
    async def abandon(self, older_than: timedelta, batch_id: str | None = None) -> int:
        """Drop unprocessed claims untouched for longer than ``older_than``.

        Restricted to one batch when ``batch_id`` is given. The underlying
        events become claimable again. Returns the number of claims dropped.
        """

    @abstractmethod
    async def release(self, batch_id: str) -> int:
        """Drop every unprocessed claim of ``batch_id`` immediately."""

    @abstractmethod
    async def executions(
        self,
        *,
        batch_id: str | None = None,
        processed: bool | None = None,
        modified_before: datetime | None = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]: ...

    @abstractmethod
    async def stale_batches(self, older_than: timedelta) -> list[StaleBatch]: ...

    @abstractmethod
    async def backlog(self) -> int:
        """Number of events with no claim."""


class PostgresBatchDispatcher(BatchDispatcher):
    """Dispatcher over the SQL tables; each operation is its own transaction.

    Claiming is a single ``INSERT ... SELECT ... FOR UPDATE SKIP LOCKED``
    statement guarded by the unique constraint on ``event_id``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock=clock)
        self._session_factory = session_factory

    async def claim(self, limit: int, batch_id: str) -> list[EventLogEntry]:
        limit = _validate_limit(limit)
        batch_id = _validate_batch_id(batch_id)
        stamped_at = self._clock()
        claimed = select(ExecutionRecord.id).where(ExecutionRecord.event_id == EventLogEntry.id).exists()
        picked = (
            select(EventLogEntry.id)
            .where(~claimed)
            .order_by(EventLogEntry.id.asc())
            .limit(limit)
            .with_for_update(of=EventLogEntry, skip_locked=True)
            .cte("picked")
        )
        stmt = (
            pg_insert(ExecutionRecord)
            .from_select(
                ["processed", "batch_id", "event_id", "created_at", "modified_at"],
                select(
                    false(),
                    literal(batch_id, String),
                    picked.c.id,
                    literal(stamped_at, DateTime(timezone=True)),
                    literal(stamped_at, DateTime(timezone=True)),
                ),
            )
            .on_conflict_do_nothing(index_elements=[ExecutionRecord.event_id])
            .returning(ExecutionRecord.event_id)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            event_ids = sorted(result.scalars().all())
            if not event_ids:
                logger.debug("batch %s claimed no events", batch_id)
                return []
            rows = await session.execute(
                select(EventLogEntry).where(EventLogEntry.id.in_(event_ids)).order_by(EventLogEntry.id.asc())
            )
            entries = list(rows.scalars().all())
            session.expunge_all()
        logger.info("batch %s claimed %d events (%d..%d)", batch_id, len(entries), event_ids[0], event_ids[-1])
        return entries

    async def mark_processed(self, batch_id: str) -> int:
        batch_id = _validate_batch_id(batch_id)
        stmt = (
            update(ExecutionRecord)
            .where(ExecutionRecord.batch_id == batch_id, ExecutionRecord.processed.is_(False))
            .values(processed=True, modified_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        count = int(result.rowcount or 0)
        logger.info("batch %s marked %d events processed", batch_id, count)
        return count

    async def abandon(self, older_than: timedelta, batch_id: str | None = None) -> int:
        cutoff = self._clock() - _validate_older_than(older_than)
        stmt = delete(ExecutionRecord).where(
            ExecutionRecord.processed.is_(False),
            ExecutionRecord.modified_at < cutoff,
        )
        if batch_id is not None:
            stmt = stmt.where(ExecutionRecord.batch_id == _validate_batch_id(batch_id))
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt.execution_options(synchronize_session=False))
        count = int(result.rowcount or 0)
        if count:
            logger.info("abandoned %d stale claims older than %s (batch=%s)", count, cutoff.isoformat(), batch_id)
        return count

    async def release(self, batch_id: str) -> int:
        batch_id = _validate_batch_id(batch_id)
        stmt = delete(ExecutionRecord).where(
            ExecutionRecord.batch_id == batch_id,
            ExecutionRecord.processed.is_(False),
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt.execution_options(synchronize_session=False))
        count = int(result.rowcount or 0)
        logger.info("batch %s released %d claims", batch_id, count)
        return count

    async def executions(
        self,
        *,
        batch_id: str | None = None,
        processed: bool | None = None,
        modified_before: datetime | None = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        async with self._session_factory() as session:
            return await ExecutionRepository(session).query(
                batch_id=batch_id,
                processed=processed,
                modified_before=modified_before,
                limit=limit,
            )

    async def stale_batches(self, older_than: timedelta) -> list[StaleBatch]:
        cutoff = self._clock() - _validate_older_than(older_than)
        async with self._session_factory() as session:
            return await ExecutionRepository(session).stale_batches(modified_before=cutoff)

    async def backlog(self) -> int:
        async with self._session_factory() as session:
            return await ExecutionRepository(session).unclaimed_count()


class InMemoryBatchDispatcher(BatchDispatcher):
    """Dispatcher over the in-memory event log; an ``asyncio.Lock`` makes claims atomic."""

    def __init__(
        self,
        log: InMemoryEventLogRepository,
        executions: InMemoryExecutionRepository | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock=clock)
        self._log = log
        self._executions = executions or InMemoryExecutionRepository()
        self._lock = asyncio.Lock()

    async def claim(self, limit: int, batch_id: str) -> list[EventLogEntry]:
        limit = _validate_limit(limit)
        batch_id = _validate_batch_id(batch_id)
        async with self._lock:
            stamped_at = self._clock()
            claimed: list[EventLogEntry] = []
            for entry in sorted(self._log.all(), key=lambda item: item.id):
                if len(claimed) >= limit:
                    break
                if self._executions.get_by_event(entry.id) is not None:
                    continue
                self._executions.add(
                    ExecutionRecord(
                        processed=False,
                        batch_id=batch_id,
                        event_id=entry.id,
                        created_at=stamped_at,
                        modified_at=stamped_at,
                    )
                )
                claimed.append(entry)
        if claimed:
            logger.info("batch %s claimed %d events", batch_id, len(claimed))
        return claimed

    async def mark_processed(self, batch_id: str) -> int:
        batch_id = _validate_batch_id(batch_id)
        async with self._lock:
            now = self._clock()
            count = 0
            for record in self._executions.values():
                if record.batch_id == batch_id and not record.processed:
                    record.processed = True
                    record.modified_at = now
                    count += 1
        logger.info("batch %s marked %d events processed", batch_id, count)
        return count

    async def abandon(self, older_than: timedelta, batch_id: str | None = None) -> int:
        cutoff = self._clock() - _validate_older_than(older_than)
        if batch_id is not None:
            batch_id = _validate_batch_id(batch_id)
        async with self._lock:
            stale = [
                record
                for record in self._executions.values()
                if not record.processed
                and record.modified_at < cutoff
                and (batch_id is None or record.batch_id == batch_id)
            ]
            for record in stale:
                self._executions.remove(record.event_id)
        return len(stale)

    async def release(self, batch_id: str) -> int:
        batch_id = _validate_batch_id(batch_id)
        async with self._lock:
            owned = [r for r in self._executions.values() if r.batch_id == batch_id and not r.processed]
            for record in owned:
                self._executions.remove(record.event_id)
        return len(owned)

    async def executions(
        self,
        *,
        batch_id: str | None = None,
        processed: bool | None = None,
        modified_before: datetime | None = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        return await self._executions.query(
            batch_id=batch_id,
            processed=processed,
            modified_before=modified_before,
            limit=limit,
        )

    async def stale_batches(self, older_than: timedelta) -> list[StaleBatch]:
        cutoff = self._clock() - _validate_older_than(older_than)
        return await self._executions.stale_batches(modified_before=cutoff)

    async def backlog(self) -> int:
        return sum(1 for entry in self._log.all() if self._executions.get_by_event(entry.id) is None)
