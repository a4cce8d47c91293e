from __future__ import annotations

from datetime import datetime, timezone

import pytest

from changefeed.capture import ChangePayload
from changefeed.exceptions import PayloadTooLargeError, PublishDurabilityError
from changefeed.outbox import (
    EventLogEntry,
    EventPublisher,
    InMemoryBroadcaster,
    InMemoryEventLogRepository,
    NullBroadcaster,
)

_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _FailingLog(InMemoryEventLogRepository):
    async def append(self, entry: EventLogEntry) -> EventLogEntry:
        raise RuntimeError("disk full")


def _payload() -> ChangePayload:
    return ChangePayload(new_values={"dname": "SALES"}, old_values={"dname": "RESEARCH"})


@pytest.mark.asyncio
async def test_publish_appends_then_broadcasts() -> None:
    log = InMemoryEventLogRepository()
    broadcaster = InMemoryBroadcaster()
    publisher = EventPublisher(log, broadcaster, channel="changes", clock=lambda: _NOW)

    result = await publisher.publish("dept", "update", _payload(), "10")

    assert result is not None
    assert result.broadcasted
    assert result.entry.id == 1
    assert result.entry.operation == "update"
    assert result.entry.record_id == "10"
    assert result.entry.created_at == _NOW
    assert result.entry.payload == '{"newValues":{"dname":"SALES"},"oldValues":{"dname":"RESEARCH"}}'
    assert broadcaster.messages == [("changes", result.entry.payload)]
    assert len(log) == 1


@pytest.mark.asyncio
async def test_publish_none_payload_is_noop() -> None:
    log = InMemoryEventLogRepository()
    broadcaster = InMemoryBroadcaster()
    publisher = EventPublisher(log, broadcaster)
    assert await publisher.publish("dept", "update", None, "10") is None
    assert len(log) == 0
    assert broadcaster.messages == []


@pytest.mark.asyncio
async def test_broadcast_failure_keeps_log_entry() -> None:
    log = InMemoryEventLogRepository()
    broadcaster = InMemoryBroadcaster()
    broadcaster.fail_with = ConnectionError("listener gone")
    publisher = EventPublisher(log, broadcaster)

    result = await publisher.publish("dept", "create", _payload(), "1")

    assert result is not None
    assert not result.broadcasted
    assert isinstance(result.broadcast_error, ConnectionError)
    assert [entry.id for entry in log.all()] == [1]


@pytest.mark.asyncio
async def test_oversized_payload_is_logged_but_not_broadcast() -> None:
    log = InMemoryEventLogRepository()
    broadcaster = InMemoryBroadcaster(max_payload_bytes=128)
    publisher = EventPublisher(log, broadcaster)
    payload = ChangePayload(new_values={"note": "x" * 500})

    result = await publisher.publish("dept", "create", payload, "1")

    assert result is not None
    assert isinstance(result.broadcast_error, PayloadTooLargeError)
    assert len(log) == 1
    assert broadcaster.messages == []


@pytest.mark.asyncio
async def test_append_failure_raises_and_skips_broadcast() -> None:
    broadcaster = InMemoryBroadcaster()
    publisher = EventPublisher(_FailingLog(), broadcaster)

    with pytest.raises(PublishDurabilityError) as exc_info:
        await publisher.publish("dept", "delete", _payload(), "3")

    assert exc_info.value.entity_name == "dept"
    assert exc_info.value.record_id == "3"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert broadcaster.messages == []


@pytest.mark.asyncio
async def test_null_broadcaster_accepts_everything() -> None:
    publisher = EventPublisher(InMemoryEventLogRepository(), NullBroadcaster())
    result = await publisher.publish("dept", "create", _payload(), "1")
    assert result is not None
    assert result.broadcasted


def test_publisher_requires_channel() -> None:
    with pytest.raises(ValueError):
        EventPublisher(InMemoryEventLogRepository(), NullBroadcaster(), channel="  ")
