"""Change detection: normalizer, diff engine, payload builder, tracking registry."""

from changefeed.capture.diff import changed_fields, compute_diff
from changefeed.capture.normalizer import normalize, to_text
from changefeed.capture.payload import ChangePayload, build_payload, parse_payload
from changefeed.capture.pipeline import CapturedChange, capture, capture_change
from changefeed.capture.registry import TrackingRegistration, TrackingRegistry, track
from changefeed.capture.types import (
    NO_CHANGE,
    Diff,
    NoChange,
    NormalizedChange,
    Operation,
    TrackedEntityChange,
)

__all__ = [
    "CapturedChange",
    "ChangePayload",
    "Diff",
    "NO_CHANGE",
    "NoChange",
    "NormalizedChange",
    "Operation",
    "TrackedEntityChange",
    "TrackingRegistration",
    "TrackingRegistry",
    "build_payload",
    "capture",
    "capture_change",
    "changed_fields",
    "compute_diff",
    "normalize",
    "parse_payload",
    "to_text",
    "track",
]
