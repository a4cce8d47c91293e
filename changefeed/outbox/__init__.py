"""Durable event log, live-channel broadcast and batch dispatch."""

from changefeed.outbox.broadcast import (
    Broadcaster,
    InMemoryBroadcaster,
    NullBroadcaster,
    PostgresNotifyBroadcaster,
)
from changefeed.outbox.dispatcher import BatchDispatcher, InMemoryBatchDispatcher, PostgresBatchDispatcher
from changefeed.outbox.models import EventLogEntry, ExecutionRecord
from changefeed.outbox.publisher import DEFAULT_CHANNEL, EventPublisher, PublishResult
from changefeed.outbox.repositories import (
    EventLogRepository,
    EventLogStore,
    ExecutionRepository,
    InMemoryEventLogRepository,
    InMemoryExecutionRepository,
    StaleBatch,
)
from changefeed.outbox.worker import BatchHandler, BatchWorker

__all__ = [
    "BatchDispatcher",
    "BatchHandler",
    "BatchWorker",
    "Broadcaster",
    "DEFAULT_CHANNEL",
    "EventLogEntry",
    "EventLogRepository",
    "EventLogStore",
    "EventPublisher",
    "ExecutionRecord",
    "ExecutionRepository",
    "InMemoryBatchDispatcher",
    "InMemoryBroadcaster",
    "InMemoryEventLogRepository",
    "InMemoryExecutionRepository",
    "NullBroadcaster",
    "PostgresBatchDispatcher",
    "PostgresNotifyBroadcaster",
    "PublishResult",
    "StaleBatch",
]
