"""Configuration system for changefeed."""

from changefeed.config.loader import ConfigLoadError, YAMLConfigLoader
from changefeed.config.manager import ConfigManager, ReloadResult
from changefeed.config.models import (
    ChangefeedConfig,
    ChannelConfig,
    DatabaseConfig,
    DispatcherConfig,
    LoggingConfig,
    TrackingConfig,
)

__all__ = [
    "ChangefeedConfig",
    "ChannelConfig",
    "ConfigLoadError",
    "ConfigManager",
    "DatabaseConfig",
    "DispatcherConfig",
    "LoggingConfig",
    "ReloadResult",
    "TrackingConfig",
    "YAMLConfigLoader",
]
