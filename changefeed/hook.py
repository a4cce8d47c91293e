"""Entity-store hook: one call per row mutation, inside the mutation's transaction."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.capture.pipeline import CapturedChange, capture
from changefeed.capture.registry import TrackingRegistry
from changefeed.capture.types import Operation, TrackedEntityChange
from changefeed.config.manager import ConfigManager
from changefeed.config.models import ChangefeedConfig
from changefeed.outbox.broadcast import Broadcaster, NullBroadcaster, PostgresNotifyBroadcaster
from changefeed.outbox.publisher import EventPublisher, PublishResult
from changefeed.outbox.repositories import EventLogRepository

logger = logging.getLogger(__name__)


class ChangeHook:
    """Runs normalize -> diff -> payload -> publish for tracked entities.

    Errors from serialization or the durable append propagate so the caller's
    transaction rolls back together with the entity mutation.
    """

    def __init__(self, *, registry: TrackingRegistry, publisher: EventPublisher) -> None:
        self._registry = registry
        self._publisher = publisher

    @classmethod
    def for_session(
        cls,
        session: AsyncSession,
        *,
        registry: TrackingRegistry,
        config: ChangefeedConfig | None = None,
    ) -> ChangeHook:
        """Wire the SQL event log and ``pg_notify`` broadcaster to ``session``.

        Without ``config`` the current ``ConfigManager`` state is used, so a
        reloaded channel section applies to hooks created afterwards.
        """
        cfg = config or ConfigManager.instance().get()
        broadcaster: Broadcaster
        if cfg.channel.enabled:
            broadcaster = PostgresNotifyBroadcaster(session, max_payload_bytes=cfg.channel.max_payload_bytes)
        else:
            broadcaster = NullBroadcaster()
        publisher = EventPublisher(EventLogRepository(session), broadcaster, channel=cfg.channel.name)
        return cls(registry=registry, publisher=publisher)

    def capture(
        self,
        entity_name: str,
        operation: Operation | str,
        *,
        record_id: str,
        before: Mapping[str, Any] | None = None,
        after: Mapping[str, Any] | None = None,
    ) -> CapturedChange | None:
        return capture(
            entity_name,
            operation,
            record_id=record_id,
            tracked_fields=self._registry.fields_for(entity_name),
            before=before,
            after=after,
        )

    async def on_mutation(
        self,
        entity_name: str,
        operation: Operation | str,
        *,
        record_id: str,
        before: Mapping[str, Any] | None = None,
        after: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> PublishResult | None:
        """Handle one row mutation; ``None`` when no tracked field changed."""
        captured = self.capture(entity_name, operation, record_id=record_id, before=before, after=after)
        if captured is None:
            return None
        return await self._publisher.publish(
            captured.entity_name,
            captured.operation,
            captured.payload,
            captured.record_id,
            now=now,
        )

    async def handle(self, change: TrackedEntityChange, *, now: datetime | None = None) -> PublishResult | None:
        return await self.on_mutation(
            change.entity_name,
            change.operation,
            record_id=change.record_id,
            before=change.before,
            after=change.after,
            now=now,
        )
