"""Exceptions raised along the change capture and dispatch paths.

A mutation whose tracked fields did not change is not an error; the diff
engine returns the ``NO_CHANGE`` marker instead. Live-channel broadcast
failures are not raised either: the publisher logs them and reports them on
its result.
"""

from __future__ import annotations


class ChangefeedError(Exception):
    """Base exception for changefeed."""


class UnknownOperationError(ChangefeedError):
    """Raised for an operation kind other than create, update or delete."""

    def __init__(self, operation: object) -> None:
        self.operation = operation
        super().__init__(f"Unknown operation: {operation!r}. Expected create, update or delete.")


class UntrackedEntityError(ChangefeedError):
    """Raised when a mutation arrives for an entity with no tracked fields registered."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity {entity_name!r} has no tracking registration")


class SerializationError(ChangefeedError):
    """Raised when a tracked value cannot be embedded in an event payload."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"Field {field!r}: {message}")


class PublishDurabilityError(ChangefeedError):
    """Raised when the event log append fails; the originating mutation must fail."""

    def __init__(self, entity_name: str, record_id: str) -> None:
        self.entity_name = entity_name
        self.record_id = record_id
        super().__init__(f"Failed to append event for {entity_name}:{record_id} to the event log")


class BroadcastError(ChangefeedError):
    """Raised by a broadcaster that could not hand a payload to the live channel."""


class PayloadTooLargeError(BroadcastError):
    """Raised when a payload exceeds the live channel size limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Payload of {size} bytes exceeds channel limit of {limit} bytes")
