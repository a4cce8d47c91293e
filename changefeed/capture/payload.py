"""Build, serialize and parse change payloads.

Serialized form::

    {"newValues": {"dname": "SALES"}, "oldValues": {"dname": "RESEARCH"}}

``oldValues`` is present only when at least one changed field had a value
before the mutation, so it never appears on create or delete.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from changefeed.capture.normalizer import ensure_utf8
from changefeed.capture.types import Diff, FieldValues, NoChange
from changefeed.exceptions import SerializationError

NEW_VALUES_KEY = "newValues"
OLD_VALUES_KEY = "oldValues"


@dataclass(frozen=True, slots=True)
class ChangePayload:
    """Structured before/after description of one change."""

    new_values: FieldValues
    old_values: FieldValues | None = None

    def to_dict(self) -> dict[str, FieldValues]:
        data: dict[str, FieldValues] = {NEW_VALUES_KEY: dict(self.new_values)}
        if self.old_values:
            data[OLD_VALUES_KEY] = dict(self.old_values)
        return data

    def serialize(self) -> str:
        """Serialize to compact JSON, keeping field insertion order."""
        try:
            text = json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise SerializationError(NEW_VALUES_KEY, str(exc)) from exc
        return ensure_utf8(text, field=NEW_VALUES_KEY)


def build_payload(diff: Diff | NoChange) -> ChangePayload | None:
    """Build the payload for a diff; ``None`` when nothing changed."""
    if not isinstance(diff, Diff) or not diff.changed:
        return None
    new_values: FieldValues = {}
    old_values: FieldValues = {}
    for field in diff.changed:
        value = diff.current[field]
        _check_text(field, value)
        new_values[field] = value
        if diff.previous is not None and field in diff.previous:
            previous = diff.previous[field]
            _check_text(field, previous)
            old_values[field] = previous
    return ChangePayload(new_values=new_values, old_values=old_values or None)


def parse_payload(text: str) -> ChangePayload:
    """Parse a serialized payload back into a :class:`ChangePayload`."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SerializationError(NEW_VALUES_KEY, f"payload is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict) or not isinstance(data.get(NEW_VALUES_KEY), dict):
        raise SerializationError(NEW_VALUES_KEY, "payload must be an object with a newValues map")
    old_values = data.get(OLD_VALUES_KEY)
    if old_values is not None and not isinstance(old_values, dict):
        raise SerializationError(OLD_VALUES_KEY, "oldValues must be a map")
    return ChangePayload(new_values=_text_map(data[NEW_VALUES_KEY]), old_values=_text_map(old_values) or None)


def _text_map(values: dict[str, Any] | None) -> FieldValues | None:
    if values is None:
        return None
    for field, value in values.items():
        _check_text(field, value)
    return dict(values)


def _check_text(field: str, value: Any) -> None:
    if value is not None and not isinstance(value, str):
        raise SerializationError(field, f"expected text value, got {type(value).__name__}")
    if value is not None:
        ensure_utf8(value, field=field)
