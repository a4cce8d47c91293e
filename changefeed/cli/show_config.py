"""changefeed config show: print the effective configuration."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

import yaml  # type: ignore[import-untyped]
from rich.console import Console

from changefeed.cli import runtime

console = Console()


def mask_url(url: str) -> str:
    """Replace the password in a connection URL with ``***``."""
    split = urlsplit(url)
    if not split.password:
        return url
    userinfo, _, hostport = split.netloc.rpartition("@")
    username = userinfo.split(":", 1)[0]
    return urlunsplit(split._replace(netloc=f"{username}:***@{hostport}"))


def show_config_command(config: str | None = None) -> dict[str, object]:
    """Print effective configuration as YAML and return it."""
    cfg = runtime.load_config(config)
    data = cfg.model_dump(mode="json")
    data["database"]["url"] = mask_url(data["database"]["url"])
    console.print(yaml.safe_dump(data, sort_keys=False).rstrip())
    return data
