"""changefeed batches: inspect, abandon and complete consumer batches."""

import asyncio
from datetime import timedelta

import typer
from rich.console import Console
from rich.table import Table

from changefeed.cli import runtime
from changefeed.outbox.models import ExecutionRecord
from changefeed.outbox.repositories import StaleBatch

batches_app = typer.Typer(name="batches", help="Inspect and manage consumer batch claims.")

console = Console()


def _older_than(seconds: int | None, default_seconds: int) -> timedelta:
    return timedelta(seconds=default_seconds if seconds is None else seconds)


@batches_app.command("list")
def list_command(
    batch_id: str | None = typer.Option(None, "--batch-id", help="Only claims of this batch."),
    processed: bool | None = typer.Option(
        None, "--processed/--unprocessed", help="Filter by processed flag."
    ),
    limit: int = typer.Option(100, "--limit", min=1, max=1000, help="Maximum rows to show."),
    config: str = typer.Option("", "--config", help="Optional config file path."),
) -> None:
    """List execution records (claims) ordered by event id."""
    cfg = runtime.load_config(config)

    async def _run() -> list[ExecutionRecord]:
        async with runtime.open_dispatcher(cfg) as dispatcher:
            return await dispatcher.executions(batch_id=batch_id, processed=processed, limit=limit)

    records = asyncio.run(_run())
    if not records:
        console.print("No claims.")
        return
    table = Table(title="Claims")
    table.add_column("event", justify="right")
    table.add_column("batch")
    table.add_column("processed")
    table.add_column("modified_at")
    for record in records:
        table.add_row(
            str(record.event_id),
            record.batch_id,
            "yes" if record.processed else "no",
            record.modified_at.isoformat(),
        )
    console.print(table)


@batches_app.command("stale")
def stale_command(
    older_than: int | None = typer.Option(
        None, "--older-than", min=0, help="Staleness threshold in seconds (default: dispatcher.stale_after_seconds)."
    ),
    config: str = typer.Option("", "--config", help="Optional config file path."),
) -> None:
    """Show batches with unprocessed claims older than the threshold."""
    cfg = runtime.load_config(config)
    threshold = _older_than(older_than, cfg.dispatcher.stale_after_seconds)

    async def _run() -> tuple[list[StaleBatch], int]:
        async with runtime.open_dispatcher(cfg) as dispatcher:
            return await dispatcher.stale_batches(threshold), await dispatcher.backlog()

    stale, backlog = asyncio.run(_run())
    console.print(f"Unclaimed events: {backlog}")
    if not stale:
        console.print("No stale batches.")
        return
    table = Table(title=f"Stale batches (older than {int(threshold.total_seconds())}s)")
    table.add_column("batch")
    table.add_column("events", justify="right")
    table.add_column("oldest modified_at")
    for batch in stale:
        table.add_row(batch.batch_id, str(batch.event_count), batch.oldest_modified_at.isoformat())
    console.print(table)


@batches_app.command("abandon")
def abandon_command(
    older_than: int | None = typer.Option(
        None, "--older-than", min=0, help="Staleness threshold in seconds (default: dispatcher.stale_after_seconds)."
    ),
    batch_id: str | None = typer.Option(None, "--batch-id", help="Only abandon claims of this batch."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    config: str = typer.Option("", "--config", help="Optional config file path."),
) -> None:
    """Free stale unprocessed claims so their events can be claimed again."""
    cfg = runtime.load_config(config)
    threshold = _older_than(older_than, cfg.dispatcher.stale_after_seconds)
    scope = f"batch {batch_id}" if batch_id else "all batches"
    if not yes:
        typer.confirm(
            f"Abandon unprocessed claims older than {int(threshold.total_seconds())}s for {scope}?",
            abort=True,
        )

    async def _run() -> int:
        async with runtime.open_dispatcher(cfg) as dispatcher:
            return await dispatcher.abandon(threshold, batch_id=batch_id)

    count = asyncio.run(_run())
    console.print(f"Abandoned {count} claim(s) for {scope}.")


@batches_app.command("mark-processed")
def mark_processed_command(
    batch_id: str = typer.Argument(..., help="Batch identifier."),
    config: str = typer.Option("", "--config", help="Optional config file path."),
) -> None:
    """Mark every unprocessed claim of a batch as processed."""
    cfg = runtime.load_config(config)

    async def _run() -> int:
        async with runtime.open_dispatcher(cfg) as dispatcher:
            return await dispatcher.mark_processed(batch_id)

    count = asyncio.run(_run())
    if count == 0:
        console.print(f"[yellow]No unprocessed claims for batch {batch_id}.[/yellow]")
        raise typer.Exit(1)
    console.print(f"Marked {count} event(s) processed for batch {batch_id}.")
