"""Diff engine: decide which tracked fields actually changed."""

from __future__ import annotations

from changefeed.capture.types import NO_CHANGE, Diff, FieldValues, NoChange, NormalizedChange, Operation


def changed_fields(current: FieldValues, previous: FieldValues | None) -> tuple[str, ...]:
    """Fields of ``current`` that are missing from ``previous`` or hold different text.

    Order follows ``current``, which the normalizer builds in tracked-field
    declaration order.
    """
    if previous is None:
        return tuple(current)
    return tuple(
        field for field, value in current.items() if field not in previous or previous[field] != value
    )


def compute_diff(change: NormalizedChange) -> Diff | NoChange:
    """Return the diff for one normalized mutation, or ``NO_CHANGE``.

    On delete the whole pre-delete record is the change, so every tracked
    field present before the delete is reported.
    """
    if change.operation is Operation.DELETE:
        current = change.before or {}
        changed = tuple(current)
        previous = None
    else:
        current = change.after or {}
        previous = change.before if change.operation is Operation.UPDATE else None
        changed = changed_fields(current, previous)
    if not changed:
        return NO_CHANGE
    return Diff(operation=change.operation, changed=changed, current=current, previous=previous)
