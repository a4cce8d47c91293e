"""Restrict raw before/after maps to tracked fields and convert values to text."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from changefeed.capture.types import FieldValues, NormalizedChange, Operation
from changefeed.exceptions import SerializationError


def to_text(value: Any, *, field: str) -> str | None:
    """Return the text form of one field value.

    ``None`` stays ``None``. Booleans use the lowercase ``true``/``false``
    spelling of a database text cast.

    Raises:
        SerializationError: value is a structure (mapping, sequence, bytes)
            an object with no stable text form, or text that is not valid UTF-8.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return ensure_utf8(value, field=field)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return to_text(value.value, field=field)
    if isinstance(value, int | float | Decimal | UUID):
        return str(value)
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    raise SerializationError(field, f"unsupported value type {type(value).__name__}")


def ensure_utf8(value: str, *, field: str) -> str:
    """Return ``value`` unchanged if it encodes as UTF-8 (lone surrogates do not)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise SerializationError(field, f"text is not valid UTF-8 at position {exc.start}") from exc
    return value


def _restrict(values: Mapping[str, Any] | None, tracked_fields: Sequence[str]) -> FieldValues | None:
    if values is None:
        return None
    if not isinstance(values, Mapping):
        raise TypeError("record values must be a mapping")
    restricted: FieldValues = {}
    for field in tracked_fields:
        if field in values:
            restricted[field] = to_text(values[field], field=field)
    return restricted


def normalize(
    operation: Operation | str,
    before: Mapping[str, Any] | None,
    after: Mapping[str, Any] | None,
    tracked_fields: Sequence[str],
) -> NormalizedChange:
    """Build the normalized before/after pair for one mutation.

    The before side is dropped on create and the after side on delete,
    whatever the caller passed.
    """
    op = Operation.parse(operation)
    return NormalizedChange(
        operation=op,
        before=None if op is Operation.CREATE else _restrict(before, tracked_fields),
        after=None if op is Operation.DELETE else _restrict(after, tracked_fields),
    )
