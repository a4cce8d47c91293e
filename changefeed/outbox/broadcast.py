"""Live notification channel broadcasters.

The live channel is best-effort. A broadcaster raises on failure and the
publisher decides what to do with the error; nothing here retries.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.exceptions import PayloadTooLargeError

logger = logging.getLogger(__name__)

# PostgreSQL rejects NOTIFY payloads of 8000 bytes or more.
NOTIFY_PAYLOAD_LIMIT = 8000
DEFAULT_MAX_PAYLOAD_BYTES = 7900


class Broadcaster(ABC):
    """Publish-only side of the live notification channel."""

    @abstractmethod
    async def broadcast(self, channel: str, payload: str) -> None: ...


def check_payload_size(payload: str, max_payload_bytes: int) -> None:
    size = len(payload.encode("utf-8"))
    if size > max_payload_bytes:
        raise PayloadTooLargeError(size, max_payload_bytes)


class PostgresNotifyBroadcaster(Broadcaster):
    """``pg_notify`` on the caller's session.

    The notification runs inside a savepoint so that a failing NOTIFY only
    rolls back the savepoint and leaves the event log row in place. Listeners
    receive it when the surrounding transaction commits.
    """

    def __init__(self, session: AsyncSession, *, max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES) -> None:
        if max_payload_bytes >= NOTIFY_PAYLOAD_LIMIT:
            raise ValueError(f"max_payload_bytes must be below {NOTIFY_PAYLOAD_LIMIT}")
        self._session = session
        self._max_payload_bytes = max_payload_bytes

    async def broadcast(self, channel: str, payload: str) -> None:
        check_payload_size(payload, self._max_payload_bytes)
        async with self._session.begin_nested():
            await self._session.execute(select(func.pg_notify(channel, payload)))


class NullBroadcaster(Broadcaster):
    """Broadcaster used when the live channel is disabled."""

    async def broadcast(self, channel: str, payload: str) -> None:  # noqa: ARG002
        logger.debug("live channel disabled, skipping broadcast on %s", channel)


class InMemoryBroadcaster(Broadcaster):
    """Records broadcasts in a list; can be switched to fail."""

    def __init__(self, *, max_payload_bytes: int | None = None) -> None:
        self.messages: list[tuple[str, str]] = []
        self.fail_with: Exception | None = None
        self._max_payload_bytes = max_payload_bytes

    async def broadcast(self, channel: str, payload: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        if self._max_payload_bytes is not None:
            check_payload_size(payload, self._max_payload_bytes)
        self.messages.append((channel, payload))

    def payloads(self, channel: str | None = None) -> list[str]:
        return [payload for name, payload in self.messages if channel is None or name == channel]
