"""changefeed config reload: re-read configuration into the running process."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from changefeed.config import ConfigManager, ReloadResult

console = Console()


def reload_config_command(config: str | None = None) -> ReloadResult:
    """Reload the process's ``ConfigManager`` and print what was applied and what needs a restart.

    Components built with ``follow`` (tracking registry, batch worker) and the
    CLI logging setup pick up the applied sections through ``on_change``.
    """
    result = ConfigManager.instance().reload(config_path=config)

    console.print("[bold]Reload result[/bold]")
    console.print(f"Applied: {len(result.applied)}")
    for path, value in result.applied.items():
        console.print(f"  + {path} = {value!r}")
    console.print(f"Skipped: {len(result.skipped)}")
    for path, value in result.skipped.items():
        console.print(f"  - {path} = {value!r} (requires restart)")

    if config is not None and not Path(config).exists():
        console.print(f"[yellow]Note:[/yellow] {config} not found; defaults, environment and overrides were used")
    return result
