"""Locate and read ``changefeed.yaml``."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

CONFIG_PATH_ENV = "CHANGEFEED_CONFIG"


class ConfigLoadError(ValueError):
    """Raised when the config file is not a readable YAML mapping."""


class YAMLConfigLoader:
    """Reads the YAML layer of the configuration.

    The file is optional: a missing or blank file contributes nothing and
    defaults plus environment variables apply.
    """

    DEFAULT_FILENAME = "changefeed.yaml"

    @classmethod
    def resolve_path(cls, cli_path: str | None = None) -> Path:
        """``$CHANGEFEED_CONFIG`` wins, then the ``--config`` value, then ./changefeed.yaml."""
        for candidate in (os.environ.get(CONFIG_PATH_ENV), cli_path):
            if candidate and candidate.strip():
                return Path(candidate.strip())
        return Path.cwd() / cls.DEFAULT_FILENAME

    @classmethod
    def load_dict(cls, path: str | Path | None = None) -> dict[str, Any]:
        target = cls.resolve_path() if path is None else Path(path)
        if not target.is_file():
            return {}
        raw = target.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            location = ""
            mark = getattr(exc, "problem_mark", None)
            if mark is not None:
                location = f":{mark.line + 1}:{mark.column + 1}"
            raise ConfigLoadError(f"Invalid YAML at {target}{location}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Config root must be a mapping, got {type(data).__name__}: {target}")
        return data
