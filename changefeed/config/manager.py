"""Process-wide configuration holder with layered sources and hot reload."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, ClassVar

from changefeed.config.loader import YAMLConfigLoader
from changefeed.config.models import ChangefeedConfig

logger = logging.getLogger(__name__)

ConfigListener = Callable[[ChangefeedConfig, ChangefeedConfig], None]

ENV_PREFIX = "CHANGEFEED_"
ENV_PATH_SEPARATOR = "__"

# Dotted paths compared as one value instead of key by key.
ATOMIC_PATHS = frozenset({"tracking.entities"})

# Sections that can change under a running process; database needs a new engine.
HOT_RELOADABLE_SECTIONS = ("channel", "dispatcher", "logging", "tracking")


def _merge(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Merge mappings left to right; nested mappings merge, other values replace."""
    result: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            current = result.get(key)
            if isinstance(current, dict) and isinstance(value, Mapping):
                result[key] = _merge(current, value)
            elif isinstance(value, Mapping):
                result[key] = _merge(value)
            else:
                result[key] = value
    return result


def _coerce_env_value(raw: str) -> Any:
    """Interpret an environment string as bool, null, number or JSON when it looks like one."""
    value = raw.strip()
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    if value[:1] in ("[", "{"):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.debug("environment value %r is not valid JSON, keeping it as text", value)
    return value


def _collect_env_overrides(
    environ: Mapping[str, str] | None = None,
    prefix: str = ENV_PREFIX,
) -> dict[str, Any]:
    """Map ``CHANGEFEED_SECTION__KEY`` variables onto nested config keys.

    Variables without a ``__`` separator (``CHANGEFEED_CONFIG``,
    ``CHANGEFEED_DATABASE_URL``) belong to their own readers and are skipped.
    """
    source = os.environ if environ is None else environ
    flat: dict[str, Any] = {}
    for name, raw in source.items():
        if not name.startswith(prefix):
            continue
        parts = [part.strip().lower() for part in name[len(prefix) :].split(ENV_PATH_SEPARATOR)]
        parts = [part for part in parts if part]
        if len(parts) >= 2:
            flat[".".join(parts)] = _coerce_env_value(raw)
    return _unflatten(flat)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value and path not in ATOMIC_PATHS:
            flat.update(_flatten(value, path))
        else:
            flat[path] = value
    return flat


def _unflatten(flat: Mapping[str, Any]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for path, value in flat.items():
        *parents, leaf = path.split(".")
        cursor = nested
        for part in parents:
            child = cursor.get(part)
            if not isinstance(child, dict):
                child = cursor[part] = {}
            cursor = child
        cursor[leaf] = value
    return nested


def _changed_paths(old: Mapping[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    """Dotted paths whose value differs between two config dumps, with the new value."""
    before, after = _flatten(old), _flatten(new)
    return {path: after.get(path) for path in sorted(before.keys() | after.keys()) if before.get(path) != after.get(path)}


@dataclass(frozen=True)
class ReloadResult:
    """Paths applied to the live config and paths that need a restart."""

    applied: dict[str, Any] = field(default_factory=dict)
    skipped: dict[str, Any] = field(default_factory=dict)


class ConfigManager:
    """Thread-safe singleton for typed configuration access.

    Sources, lowest priority first: model defaults, ``changefeed.yaml``,
    ``CHANGEFEED_SECTION__KEY`` environment variables, runtime overrides.
    """

    _instance: ClassVar[ConfigManager | None] = None
    _class_lock: ClassVar[Lock] = Lock()

    def __init__(self) -> None:
        self._lock = Lock()
        self._config = ChangefeedConfig()
        self._listeners: list[ConfigListener] = []
        self._config_path: str | None = None
        self._overrides: dict[str, Any] = {}

    @classmethod
    def instance(cls) -> ConfigManager:
        with cls._class_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def _reset_for_tests(cls) -> None:
        """Drop the singleton so each test starts from defaults."""
        with cls._class_lock:
            cls._instance = None

    @staticmethod
    def _compose(config_path: str | None, overrides: Mapping[str, Any]) -> ChangefeedConfig:
        layers = (YAMLConfigLoader.load_dict(config_path), _collect_env_overrides(), overrides)
        return ChangefeedConfig.model_validate(_merge(*layers))

    @classmethod
    def load(
        cls,
        config_path: str | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> ConfigManager:
        """Rebuild the configuration from every source and notify listeners."""
        manager = cls.instance()
        runtime_overrides = dict(overrides or {})
        fresh = cls._compose(config_path, runtime_overrides)
        with manager._lock:
            previous, manager._config = manager._config, fresh
            manager._config_path = config_path
            manager._overrides = runtime_overrides
            listeners = tuple(manager._listeners)
        manager._notify(listeners, previous, fresh)
        return manager

    def get(self) -> ChangefeedConfig:
        with self._lock:
            return self._config

    def on_change(self, callback: ConfigListener) -> None:
        """Call ``callback(old, new)`` after every load or applied reload."""
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def reload(self, config_path: str | None = None) -> ReloadResult:
        """Re-read the sources and apply changes under the hot-reloadable sections only.

        Changes elsewhere (``database``) are returned as skipped and take
        effect on the next process start.
        """
        with self._lock:
            current = self._config
            path = config_path if config_path is not None else self._config_path
            overrides = dict(self._overrides)
            listeners = tuple(self._listeners)

        candidate = self._compose(path, overrides)
        current_dump = current.model_dump(mode="python")
        result = ReloadResult()
        for dotted, value in _changed_paths(current_dump, candidate.model_dump(mode="python")).items():
            section = dotted.split(".", 1)[0]
            target = result.applied if section in HOT_RELOADABLE_SECTIONS else result.skipped
            target[dotted] = value

        updated = current
        if result.applied:
            updated = ChangefeedConfig.model_validate(_unflatten({**_flatten(current_dump), **result.applied}))
        with self._lock:
            self._config = updated
            self._config_path = path
        if result.skipped:
            logger.warning("config changes need a restart: %s", ", ".join(sorted(result.skipped)))
        if result.applied:
            logger.info("config reloaded: %s", ", ".join(sorted(result.applied)))
            self._notify(listeners, current, updated)
        return result

    @staticmethod
    def _notify(listeners: tuple[ConfigListener, ...], old: ChangefeedConfig, new: ChangefeedConfig) -> None:
        for callback in listeners:
            callback(old, new)
