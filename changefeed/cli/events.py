"""changefeed events: read the durable event log."""

import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from changefeed.cli import runtime
from changefeed.outbox.models import EventLogEntry

events_app = typer.Typer(name="events", help="Inspect the durable event log.")

console = Console()


def _parse_time(value: str | None) -> datetime | None:
    if value is None or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        raise typer.BadParameter(f"not an ISO-8601 timestamp: {value}") from None


def _render(entries: list[EventLogEntry]) -> None:
    table = Table(title="Event log")
    table.add_column("id", justify="right")
    table.add_column("entity")
    table.add_column("operation")
    table.add_column("record")
    table.add_column("created_at")
    table.add_column("payload", overflow="fold")
    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.entity_name,
            entry.operation,
            entry.record_id,
            entry.created_at.isoformat() if entry.created_at else "",
            entry.payload,
        )
    console.print(table)


@events_app.command("list")
def list_command(
    after_id: int | None = typer.Option(None, "--after-id", help="Only events with id greater than this."),
    up_to_id: int | None = typer.Option(None, "--up-to-id", help="Only events with id less than or equal to this."),
    since: str | None = typer.Option(None, "--since", help="Only events created at or after this ISO timestamp."),
    until: str | None = typer.Option(None, "--until", help="Only events created at or before this ISO timestamp."),
    entity: str | None = typer.Option(None, "--entity", help="Only events for this entity."),
    limit: int = typer.Option(50, "--limit", min=1, max=1000, help="Maximum rows to show."),
    config: str = typer.Option("", "--config", help="Optional config file path."),
) -> None:
    """List event log entries in id order."""
    start_time = _parse_time(since)
    end_time = _parse_time(until)
    cfg = runtime.load_config(config)

    async def _run() -> list[EventLogEntry]:
        async with runtime.open_event_log(cfg) as log:
            return await log.query(
                after_id=after_id,
                up_to_id=up_to_id,
                entity_name=entity,
                start_time=start_time,
                end_time=end_time,
                limit=limit,
            )

    entries = asyncio.run(_run())
    if not entries:
        console.print("No events.")
        return
    _render(entries)
