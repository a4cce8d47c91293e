"""Unit tests for configuration models."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from changefeed.capture.registry import TrackingRegistry
from changefeed.config import ChangefeedConfig, ChannelConfig, DispatcherConfig, LoggingConfig, TrackingConfig
from changefeed.hook import ChangeHook
from changefeed.outbox.broadcast import NOTIFY_PAYLOAD_LIMIT


def test_defaults() -> None:
    cfg = ChangefeedConfig()
    assert cfg.channel.name == "db_notifications"
    assert cfg.channel.enabled is True
    assert cfg.channel.max_payload_bytes == 7900
    assert cfg.dispatcher.batch_size == 100
    assert cfg.dispatcher.stale_after_seconds == 900
    assert cfg.tracking.entities == {}
    assert cfg.logging.level == "INFO"


def test_tracking_requires_fields_per_entity() -> None:
    with pytest.raises(ValidationError):
        TrackingConfig(entities={"dept": []})
    with pytest.raises(ValidationError):
        TrackingConfig(entities={" ": ["dname"]})


@pytest.mark.parametrize(
    "kwargs",
    [{"name": ""}, {"name": "x" * 64}, {"max_payload_bytes": 8000}, {"max_payload_bytes": 10}],
)
def test_channel_limits(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        ChannelConfig(**kwargs)


@pytest.mark.parametrize(
    "kwargs",
    [{"batch_size": 0}, {"batch_size": 2001}, {"poll_interval_seconds": 0}, {"stale_after_seconds": 0}],
)
def test_dispatcher_limits(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        DispatcherConfig(**kwargs)


def test_logging_level_is_normalized() -> None:
    assert LoggingConfig(level=" debug ").level == "DEBUG"
    with pytest.raises(ValidationError):
        LoggingConfig(level="loud")


def test_settings_read_nested_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHANGEFEED_DISPATCHER__BATCH_SIZE", "25")
    monkeypatch.setenv("CHANGEFEED_CHANNEL__NAME", "orders")
    cfg = ChangefeedConfig()
    assert cfg.dispatcher.batch_size == 25
    assert cfg.channel.name == "orders"


def test_channel_payload_limit_accepted_by_notify_broadcaster() -> None:
    cfg = ChangefeedConfig.model_validate({"channel": {"max_payload_bytes": NOTIFY_PAYLOAD_LIMIT - 1}})
    hook = ChangeHook.for_session(MagicMock(), registry=TrackingRegistry(), config=cfg)
    assert isinstance(hook, ChangeHook)
    with pytest.raises(ValidationError):
        ChangefeedConfig.model_validate({"channel": {"max_payload_bytes": NOTIFY_PAYLOAD_LIMIT}})
