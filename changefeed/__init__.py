"""changefeed: field-level change capture with a durable outbox and batch dispatch."""

from changefeed.capture import (
    NO_CHANGE,
    CapturedChange,
    ChangePayload,
    Operation,
    TrackedEntityChange,
    TrackingRegistry,
    build_payload,
    capture,
    compute_diff,
    normalize,
    parse_payload,
    track,
)
from changefeed.exceptions import (
    ChangefeedError,
    PublishDurabilityError,
    SerializationError,
    UnknownOperationError,
    UntrackedEntityError,
)
from changefeed.hook import ChangeHook
from changefeed.outbox import (
    BatchDispatcher,
    BatchWorker,
    EventLogEntry,
    EventPublisher,
    ExecutionRecord,
    InMemoryBatchDispatcher,
    PostgresBatchDispatcher,
    PublishResult,
)

__all__ = [
    "BatchDispatcher",
    "BatchWorker",
    "CapturedChange",
    "ChangeHook",
    "ChangePayload",
    "ChangefeedError",
    "EventLogEntry",
    "EventPublisher",
    "ExecutionRecord",
    "InMemoryBatchDispatcher",
    "NO_CHANGE",
    "Operation",
    "PostgresBatchDispatcher",
    "PublishDurabilityError",
    "PublishResult",
    "SerializationError",
    "TrackedEntityChange",
    "TrackingRegistry",
    "UnknownOperationError",
    "UntrackedEntityError",
    "build_payload",
    "capture",
    "compute_diff",
    "normalize",
    "parse_payload",
    "track",
]
