from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from changefeed.exceptions import BroadcastError, PayloadTooLargeError
from changefeed.outbox import InMemoryBroadcaster, PostgresNotifyBroadcaster
from changefeed.outbox.broadcast import NOTIFY_PAYLOAD_LIMIT, check_payload_size


def test_check_payload_size_counts_utf8_bytes() -> None:
    check_payload_size("é" * 64, 128)
    with pytest.raises(PayloadTooLargeError) as exc_info:
        check_payload_size("é" * 65, 128)
    assert exc_info.value.size == 130
    assert exc_info.value.limit == 128
    assert isinstance(exc_info.value, BroadcastError)


def test_notify_broadcaster_limit_must_stay_below_server_limit() -> None:
    with pytest.raises(ValueError):
        PostgresNotifyBroadcaster(MagicMock(), max_payload_bytes=NOTIFY_PAYLOAD_LIMIT)


@pytest.mark.asyncio
async def test_notify_broadcaster_rejects_oversized_payload_before_touching_session() -> None:
    session = MagicMock()
    broadcaster = PostgresNotifyBroadcaster(session, max_payload_bytes=128)
    with pytest.raises(PayloadTooLargeError):
        await broadcaster.broadcast("changes", "x" * 129)
    session.begin_nested.assert_not_called()


@pytest.mark.asyncio
async def test_in_memory_broadcaster_filters_by_channel() -> None:
    broadcaster = InMemoryBroadcaster()
    await broadcaster.broadcast("a", "1")
    await broadcaster.broadcast("b", "2")
    await broadcaster.broadcast("a", "3")
    assert broadcaster.payloads("a") == ["1", "3"]
    assert broadcaster.payloads() == ["1", "2", "3"]
