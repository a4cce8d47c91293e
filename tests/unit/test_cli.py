"""Unit tests for the changefeed CLI, wired to in-memory stores."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from changefeed.capture import ChangePayload
from changefeed.capture.registry import TrackingRegistry
from changefeed.cli import app
from changefeed.cli.show_config import mask_url
from changefeed.config import ConfigManager
from changefeed.outbox import EventPublisher, InMemoryBatchDispatcher, InMemoryEventLogRepository, NullBroadcaster
from changefeed.timeutil import utc_now

runner = CliRunner()


class _Clock:
    def __init__(self) -> None:
        self.now = utc_now()

    def __call__(self):  # type: ignore[no-untyped-def]
        return self.now


@pytest.fixture
def stores(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):  # type: ignore[no-untyped-def]
    monkeypatch.chdir(tmp_path)
    log = InMemoryEventLogRepository()
    clock = _Clock()
    dispatcher = InMemoryBatchDispatcher(log, clock=clock)

    async def _seed() -> None:
        publisher = EventPublisher(log, NullBroadcaster())
        await publisher.publish("dept", "update", ChangePayload({"dname": "SALES"}, {"dname": "OPS"}), "10")
        await publisher.publish("emp", "create", ChangePayload({"ename": "KING"}), "7")
        await publisher.publish("dept", "delete", ChangePayload({"dname": "SALES"}), "10")

    asyncio.run(_seed())

    @asynccontextmanager
    async def _open_dispatcher(cfg):  # type: ignore[no-untyped-def]
        yield dispatcher

    @asynccontextmanager
    async def _open_event_log(cfg):  # type: ignore[no-untyped-def]
        yield log

    monkeypatch.setattr("changefeed.cli.runtime.open_dispatcher", _open_dispatcher)
    monkeypatch.setattr("changefeed.cli.runtime.open_event_log", _open_event_log)
    monkeypatch.setattr("changefeed.cli.events.console", Console(width=240))
    monkeypatch.setattr("changefeed.cli.batches.console", Console(width=240))
    return log, dispatcher, clock


def test_events_list_filters_by_entity(stores) -> None:  # type: ignore[no-untyped-def]
    result = runner.invoke(app, ["events", "list", "--entity", "emp"])
    assert result.exit_code == 0, result.output
    assert "KING" in result.output
    assert "SALES" not in result.output


def test_events_list_after_last_id_is_empty(stores) -> None:  # type: ignore[no-untyped-def]
    result = runner.invoke(app, ["events", "list", "--after-id", "3"])
    assert result.exit_code == 0
    assert "No events." in result.output


def test_events_list_bounds_id_range(stores) -> None:  # type: ignore[no-untyped-def]
    result = runner.invoke(app, ["events", "list", "--after-id", "1", "--up-to-id", "2"])
    assert result.exit_code == 0, result.output
    assert "KING" in result.output
    assert "SALES" not in result.output


def test_events_list_rejects_bad_timestamp(stores) -> None:  # type: ignore[no-untyped-def]
    result = runner.invoke(app, ["events", "list", "--since", "yesterday"])
    assert result.exit_code != 0


def test_batches_list_and_mark_processed(stores) -> None:  # type: ignore[no-untyped-def]
    _, dispatcher, _ = stores
    asyncio.run(dispatcher.claim(2, "cli-batch"))

    listed = runner.invoke(app, ["batches", "list", "--unprocessed"])
    assert listed.exit_code == 0, listed.output
    assert "cli-batch" in listed.output

    marked = runner.invoke(app, ["batches", "mark-processed", "cli-batch"])
    assert marked.exit_code == 0, marked.output
    assert "Marked 2 event(s)" in marked.output

    again = runner.invoke(app, ["batches", "mark-processed", "cli-batch"])
    assert again.exit_code == 1


def test_batches_stale_and_abandon(stores) -> None:  # type: ignore[no-untyped-def]
    _, dispatcher, clock = stores
    asyncio.run(dispatcher.claim(2, "stuck"))
    clock.now += timedelta(hours=1)

    stale = runner.invoke(app, ["batches", "stale"])
    assert stale.exit_code == 0, stale.output
    assert "Unclaimed events: 1" in stale.output
    assert "stuck" in stale.output

    declined = runner.invoke(app, ["batches", "abandon"], input="n\n")
    assert declined.exit_code == 1
    assert asyncio.run(dispatcher.backlog()) == 1

    abandoned = runner.invoke(app, ["batches", "abandon", "--yes", "--older-than", "60"])
    assert abandoned.exit_code == 0, abandoned.output
    assert "Abandoned 2 claim(s)" in abandoned.output
    assert asyncio.run(dispatcher.backlog()) == 3


def test_config_show_masks_password(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    cfg_path = tmp_path / "changefeed.yaml"
    cfg_path.write_text("database:\n  url: postgresql://app:secret@db:5432/prod\n", encoding="utf-8")
    monkeypatch.setenv("CHANGEFEED_CONFIG", str(cfg_path))

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0, result.output
    assert "secret" not in result.output
    assert "app:***@db:5432" in result.output


def test_mask_url_leaves_passwordless_urls() -> None:
    assert mask_url("postgresql://app@db/prod") == "postgresql://app@db/prod"
    assert mask_url("not a url") == "not a url"
    assert mask_url("postgresql://u:p@[::1]:5432/db") == "postgresql://u:***@[::1]:5432/db"


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("changefeed ")


def test_config_reload_reports_applied_and_skipped(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("changefeed.cli.reload_config.console", Console(width=240))
    cfg_path = tmp_path / "changefeed.yaml"
    cfg_path.write_text("database:\n  url: postgresql://app@db/one\n", encoding="utf-8")
    manager = ConfigManager.load(config_path=str(cfg_path))
    registry = TrackingRegistry.follow(manager)
    cfg_path.write_text(
        "database:\n  url: postgresql://app@db/two\n"
        "dispatcher:\n  batch_size: 50\n"
        "tracking:\n  entities:\n    dept: [dname]\n",
        encoding="utf-8",
    )

    result = runner.invoke(app, ["config", "reload"])

    assert result.exit_code == 0, result.output
    assert "Applied: 2" in result.output
    assert "+ dispatcher.batch_size = 50" in result.output
    assert "Skipped: 1" in result.output
    assert "database.url" in result.output
    assert "requires restart" in result.output
    assert manager.get().dispatcher.batch_size == 50
    assert manager.get().database.url == "postgresql://app@db/one"
    assert registry.fields_for("dept") == ("dname",)


def test_config_reload_notes_missing_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("changefeed.cli.reload_config.console", Console(width=240))
    missing = tmp_path / "absent.yaml"

    result = runner.invoke(app, ["config", "reload", "--config", str(missing)])

    assert result.exit_code == 0, result.output
    assert "Applied: 0" in result.output
    assert "not found" in result.output
