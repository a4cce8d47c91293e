"""ORM models for the durable event log and execution bookkeeping."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Identity, Index, String, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from changefeed.db import Base


class EventLogEntry(Base):
    """One published change event. Append-only; ``id`` order is replay order."""

    __tablename__ = "event_logs"
    __table_args__ = (
        Index("idx_event_logs_created_at", "created_at"),
        Index("idx_event_logs_entity_record", "entity_name", "record_id"),
        {"comment": "Append-only log of tracked field changes"},
    )

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    entity_name: Mapped[str] = mapped_column(String(64), nullable=False)
    operation: Mapped[str] = mapped_column(String(10), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    record_id: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"EventLogEntry(id={self.id!r}, entity_name={self.entity_name!r}, operation={self.operation!r})"


class ExecutionRecord(Base):
    """Claim of one event by a consumer batch.

    ``event_id`` is unique, so at most one live claim exists per event.
    Abandonment deletes the unprocessed claim, which frees the event.
    """

    __tablename__ = "event_log_executions"
    __table_args__ = (
        UniqueConstraint("event_id", name="uq_event_log_executions_event_id"),
        Index("idx_event_log_executions_batch_id", "batch_id"),
        Index("idx_event_log_executions_processed_modified", "processed", "modified_at"),
        {"comment": "Consumer batch claims over event_logs"},
    )

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    batch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    event_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("event_logs.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"ExecutionRecord(event_id={self.event_id!r}, batch_id={self.batch_id!r}, "
            f"processed={self.processed!r})"
        )
