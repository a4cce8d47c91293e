"""Repository layer for the event log and execution bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.outbox.models import EventLogEntry, ExecutionRecord


@dataclass(frozen=True, slots=True)
class StaleBatch:
    """Unprocessed claims of one batch that have not moved since ``oldest_modified_at``."""

    batch_id: str
    event_count: int
    oldest_modified_at: datetime


class EventLogStore(Protocol):
    """Append/read interface of the durable event log."""

    async def append(self, entry: EventLogEntry) -> EventLogEntry: ...

    async def get(self, event_id: int) -> EventLogEntry | None: ...

    async def query(
        self,
        *,
        after_id: int | None = None,
        up_to_id: int | None = None,
        entity_name: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[EventLogEntry]: ...


class EventLogRepository:
    """Event log bound to the caller's session and transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: EventLogEntry) -> EventLogEntry:
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def get(self, event_id: int) -> EventLogEntry | None:
        return await self._session.get(EventLogEntry, event_id)

    async def query(
        self,
        *,
        after_id: int | None = None,
        up_to_id: int | None = None,
        entity_name: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[EventLogEntry]:
        stmt = select(EventLogEntry)
        if after_id is not None:
            stmt = stmt.where(EventLogEntry.id > after_id)
        if up_to_id is not None:
            stmt = stmt.where(EventLogEntry.id <= up_to_id)
        if entity_name is not None:
            stmt = stmt.where(EventLogEntry.entity_name == entity_name)
        if start_time is not None:
            stmt = stmt.where(EventLogEntry.created_at >= start_time)
        if end_time is not None:
            stmt = stmt.where(EventLogEntry.created_at <= end_time)
        stmt = stmt.order_by(EventLogEntry.id.asc()).offset(max(0, offset)).limit(max(1, limit))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class ExecutionRepository:
    """Read queries over execution records for operators and monitoring."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def query(
        self,
        *,
        batch_id: str | None = None,
        processed: bool | None = None,
        modified_before: datetime | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        stmt = select(ExecutionRecord)
        if batch_id is not None:
            stmt = stmt.where(ExecutionRecord.batch_id == batch_id)
        if processed is not None:
            stmt = stmt.where(ExecutionRecord.processed.is_(processed))
        if modified_before is not None:
            stmt = stmt.where(ExecutionRecord.modified_at < modified_before)
        stmt = stmt.order_by(ExecutionRecord.event_id.asc()).offset(max(0, offset)).limit(max(1, limit))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def stale_batches(self, *, modified_before: datetime) -> list[StaleBatch]:
        oldest = func.min(ExecutionRecord.modified_at)
        stmt = (
            select(ExecutionRecord.batch_id, func.count(ExecutionRecord.id), oldest)
            .where(ExecutionRecord.processed.is_(False), ExecutionRecord.modified_at < modified_before)
            .group_by(ExecutionRecord.batch_id)
            .order_by(oldest.asc())
        )
        result = await self._session.execute(stmt)
        return [
            StaleBatch(batch_id=batch_id, event_count=int(count), oldest_modified_at=modified_at)
            for batch_id, count, modified_at in result.all()
        ]

    async def unclaimed_count(self) -> int:
        claimed = select(ExecutionRecord.id).where(ExecutionRecord.event_id == EventLogEntry.id).exists()
        stmt = select(func.count(EventLogEntry.id)).where(~claimed)
        return int(await self._session.scalar(stmt) or 0)


class InMemoryEventLogRepository:
    """In-memory event log for deterministic tests and lite mode."""

    def __init__(self) -> None:
        self._items: list[EventLogEntry] = []
        self._next_id = 1

    async def append(self, entry: EventLogEntry) -> EventLogEntry:
        entry.id = self._next_id
        self._next_id += 1
        self._items.append(entry)
        return entry

    async def get(self, event_id: int) -> EventLogEntry | None:
        for item in self._items:
            if item.id == event_id:
                return item
        return None

    async def query(
        self,
        *,
        after_id: int | None = None,
        up_to_id: int | None = None,
        entity_name: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[EventLogEntry]:
        items = list(self._items)
        if after_id is not None:
            items = [item for item in items if item.id > after_id]
        if up_to_id is not None:
            items = [item for item in items if item.id <= up_to_id]
        if entity_name is not None:
            items = [item for item in items if item.entity_name == entity_name]
        if start_time is not None:
            items = [item for item in items if item.created_at >= start_time]
        if end_time is not None:
            items = [item for item in items if item.created_at <= end_time]
        start = max(0, offset)
        return items[start : start + max(1, limit)]

    def all(self) -> list[EventLogEntry]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class InMemoryExecutionRepository:
    """In-memory execution records keyed by event id (one live claim per event)."""

    def __init__(self) -> None:
        self._items: dict[int, ExecutionRecord] = {}
        self._next_id = 1

    def get_by_event(self, event_id: int) -> ExecutionRecord | None:
        return self._items.get(event_id)

    def add(self, record: ExecutionRecord) -> ExecutionRecord:
        if record.event_id in self._items:
            raise ValueError(f"event {record.event_id} is already claimed")
        record.id = self._next_id
        self._next_id += 1
        self._items[record.event_id] = record
        return record

    def remove(self, event_id: int) -> None:
        self._items.pop(event_id, None)

    def values(self) -> list[ExecutionRecord]:
        return sorted(self._items.values(), key=lambda item: item.event_id)

    async def query(
        self,
        *,
        batch_id: str | None = None,
        processed: bool | None = None,
        modified_before: datetime | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        items = self.values()
        if batch_id is not None:
            items = [item for item in items if item.batch_id == batch_id]
        if processed is not None:
            items = [item for item in items if item.processed is processed]
        if modified_before is not None:
            items = [item for item in items if item.modified_at < modified_before]
        start = max(0, offset)
        return items[start : start + max(1, limit)]

    async def stale_batches(self, *, modified_before: datetime) -> list[StaleBatch]:
        grouped: dict[str, list[ExecutionRecord]] = {}
        for item in self.values():
            if not item.processed and item.modified_at < modified_before:
                grouped.setdefault(item.batch_id, []).append(item)
        batches = [
            StaleBatch(
                batch_id=batch_id,
                event_count=len(items),
                oldest_modified_at=min(item.modified_at for item in items),
            )
            for batch_id, items in grouped.items()
        ]
        return sorted(batches, key=lambda batch: batch.oldest_modified_at)
