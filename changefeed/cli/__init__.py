"""CLI tools: changefeed events, changefeed batches, changefeed config."""

from importlib import metadata

import typer

from changefeed.cli.batches import batches_app
from changefeed.cli.events import events_app
from changefeed.cli.reload_config import reload_config_command
from changefeed.cli.show_config import show_config_command

app = typer.Typer(
    name="changefeed",
    help="changefeed: inspect the event log and manage consumer batches.",
    no_args_is_help=True,
)
config_app = typer.Typer(name="config", help="Configuration commands.")

app.add_typer(events_app, name="events")
app.add_typer(batches_app, name="batches")
app.add_typer(config_app, name="config")


@config_app.command("show")
def show_command(
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Print the effective configuration (password masked)."""
    show_config_command(config=config or None)


@config_app.command("reload")
def reload_command(
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Re-read configuration and apply hot-reloadable sections."""
    reload_config_command(config=config or None)


@app.command("version")
def version_command() -> None:
    """Print installed package version."""
    try:
        version = metadata.version("changefeed")
    except metadata.PackageNotFoundError:
        version = "unknown"
    typer.echo(f"changefeed {version}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
