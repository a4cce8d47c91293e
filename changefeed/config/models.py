"""Configuration models for changefeed."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Connection settings for the database hosting the outbox tables."""

    url: str = Field(default="", description="PostgreSQL URL; falls back to CHANGEFEED_DATABASE_URL.")
    pool_size: int = Field(default=10, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: float = Field(default=30.0, gt=0)
    echo: bool = Field(default=False)


class TrackingConfig(BaseModel):
    """Entity name -> ordered list of tracked field names."""

    entities: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("entities")
    @classmethod
    def _non_empty_fields(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for entity, fields in value.items():
            if not entity.strip():
                raise ValueError("entity name must be non-empty")
            if not fields:
                raise ValueError(f"entity {entity!r} must track at least one field")
        return value


class ChannelConfig(BaseModel):
    """Live notification channel configuration."""

    name: str = Field(default="db_notifications", min_length=1, max_length=63)
    enabled: bool = Field(default=True)
    # pg_notify rejects payloads of 8000 bytes or more.
    max_payload_bytes: int = Field(default=7900, ge=128, lt=8000)


class DispatcherConfig(BaseModel):
    """Batch dispatcher and worker configuration."""

    batch_size: int = Field(default=100, ge=1, le=2000)
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    stale_after_seconds: int = Field(default=900, ge=1)
    release_on_error: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Logging configuration applied by the CLI."""

    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s: %(message)s")

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return normalized


class ChangefeedConfig(BaseSettings):
    """Root configuration model for changefeed."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="CHANGEFEED_",
        env_nested_delimiter="__",
        extra="ignore",
    )
