"""Event publisher: durable append first, then best-effort broadcast."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from changefeed.capture.payload import ChangePayload
from changefeed.capture.types import Operation
from changefeed.exceptions import PublishDurabilityError
from changefeed.outbox.broadcast import Broadcaster
from changefeed.outbox.models import EventLogEntry
from changefeed.outbox.repositories import EventLogStore
from changefeed.timeutil import utc_now

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "db_notifications"


@dataclass(slots=True)
class PublishResult:
    """Outcome of one publish: the durable entry plus any broadcast failure."""

    entry: EventLogEntry
    broadcast_error: Exception | None = None

    @property
    def broadcasted(self) -> bool:
        return self.broadcast_error is None


class EventPublisher:
    """Append change events to the event log and notify the live channel.

    The two effects are independent calls. A failed append raises
    :class:`PublishDurabilityError` and nothing is broadcast; a failed
    broadcast is logged and reported on the result while the appended entry
    stays in the caller's transaction.
    """

    def __init__(
        self,
        log: EventLogStore,
        broadcaster: Broadcaster,
        *,
        channel: str = DEFAULT_CHANNEL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not channel or not channel.strip():
            raise ValueError("channel must be a non-empty string")
        self._log = log
        self._broadcaster = broadcaster
        self._channel = channel.strip()
        self._clock = clock

    @property
    def channel(self) -> str:
        return self._channel

    async def publish(
        self,
        entity_name: str,
        operation: Operation | str,
        payload: ChangePayload | None,
        record_id: str,
        now: datetime | None = None,
    ) -> PublishResult | None:
        """Publish one change; ``None`` payload is a no-op."""
        if payload is None:
            return None
        op = Operation.parse(operation)
        serialized = payload.serialize()
        entry = EventLogEntry(
            entity_name=entity_name,
            operation=op.value,
            payload=serialized,
            record_id=str(record_id),
            created_at=now or self._clock(),
        )
        try:
            entry = await self._log.append(entry)
        except Exception as exc:
            raise PublishDurabilityError(entity_name, str(record_id)) from exc

        try:
            await self._broadcaster.broadcast(self._channel, serialized)
        except Exception as exc:
            logger.warning(
                "broadcast on channel %s failed for event %s (%s:%s): %s",
                self._channel,
                entry.id,
                entity_name,
                record_id,
                exc,
            )
            return PublishResult(entry=entry, broadcast_error=exc)
        logger.debug("published event %s for %s:%s on %s", entry.id, entity_name, record_id, self._channel)
        return PublishResult(entry=entry)
