"""Value types shared by the normalizer, diff engine and payload builder."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from changefeed.exceptions import UnknownOperationError

FieldValues = dict[str, str | None]

_OPERATION_ALIASES = {
    "create": "create",
    "insert": "create",
    "update": "update",
    "delete": "delete",
}


class Operation(str, Enum):
    """Kind of row mutation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: Operation | str) -> Operation:
        """Resolve an operation name, accepting ``INSERT`` as an alias of create."""
        if isinstance(value, Operation):
            return value
        if isinstance(value, str):
            canonical = _OPERATION_ALIASES.get(value.strip().lower())
            if canonical is not None:
                return cls(canonical)
        raise UnknownOperationError(value)


@dataclass(frozen=True, slots=True)
class TrackedEntityChange:
    """One row mutation as reported by the entity store."""

    entity_name: str
    operation: Operation
    record_id: str
    before: Mapping[str, Any] | None = None
    after: Mapping[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class NormalizedChange:
    """Before/after pair restricted to tracked fields, values in text form."""

    operation: Operation
    before: FieldValues | None
    after: FieldValues | None


@dataclass(frozen=True, slots=True)
class Diff:
    """Tracked fields that changed, with the values needed to describe them."""

    operation: Operation
    changed: tuple[str, ...]
    current: FieldValues
    previous: FieldValues | None = None

    def __bool__(self) -> bool:
        return bool(self.changed)


class NoChange:
    """Marker returned by the diff engine when no tracked field changed."""

    _instance: NoChange | None = None

    def __new__(cls) -> NoChange:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_CHANGE"


NO_CHANGE: Final = NoChange()
