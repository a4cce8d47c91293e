"""Side-effect free part of the mutation path: normalize, diff, build payload."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from changefeed.capture.diff import compute_diff
from changefeed.capture.normalizer import normalize
from changefeed.capture.payload import ChangePayload, build_payload
from changefeed.capture.types import Diff, Operation, TrackedEntityChange

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CapturedChange:
    """A mutation that changed at least one tracked field."""

    entity_name: str
    operation: Operation
    record_id: str
    diff: Diff
    payload: ChangePayload


def capture(
    entity_name: str,
    operation: Operation | str,
    *,
    record_id: str,
    tracked_fields: Sequence[str],
    before: Mapping[str, Any] | None = None,
    after: Mapping[str, Any] | None = None,
) -> CapturedChange | None:
    """Run one mutation through normalizer, diff engine and payload builder.

    Returns ``None`` when no tracked field changed.
    """
    op = Operation.parse(operation)
    diff = compute_diff(normalize(op, before, after, tracked_fields))
    payload = build_payload(diff)
    if not isinstance(diff, Diff) or payload is None:
        logger.debug("no tracked field changed for %s:%s (%s)", entity_name, record_id, op.value)
        return None
    return CapturedChange(
        entity_name=entity_name,
        operation=op,
        record_id=str(record_id),
        diff=diff,
        payload=payload,
    )


def capture_change(change: TrackedEntityChange, tracked_fields: Sequence[str]) -> CapturedChange | None:
    """Variant of :func:`capture` taking a :class:`TrackedEntityChange`."""
    return capture(
        change.entity_name,
        change.operation,
        record_id=change.record_id,
        tracked_fields=tracked_fields,
        before=change.before,
        after=change.after,
    )
