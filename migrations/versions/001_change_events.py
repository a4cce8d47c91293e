"""Create event log and execution bookkeeping tables.

Revision ID: 001_change_events
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_change_events"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "event_logs",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        sa.Column("entity_name", sa.String(64), nullable=False),
        sa.Column("operation", sa.String(10), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("record_id", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        comment="Append-only log of tracked field changes",
    )
    op.create_index("idx_event_logs_created_at", "event_logs", ["created_at"])
    op.create_index("idx_event_logs_entity_record", "event_logs", ["entity_name", "record_id"])

    op.create_table(
        "event_log_executions",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("batch_id", sa.String(100), nullable=False),
        sa.Column("event_id", sa.BigInteger(), sa.ForeignKey("event_logs.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", name="uq_event_log_executions_event_id"),
        comment="Consumer batch claims over event_logs",
    )
    op.create_index("idx_event_log_executions_batch_id", "event_log_executions", ["batch_id"])
    op.create_index(
        "idx_event_log_executions_processed_modified",
        "event_log_executions",
        ["processed", "modified_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_event_log_executions_processed_modified", table_name="event_log_executions")
    op.drop_index("idx_event_log_executions_batch_id", table_name="event_log_executions")
    op.drop_table("event_log_executions")

    op.drop_index("idx_event_logs_entity_record", table_name="event_logs")
    op.drop_index("idx_event_logs_created_at", table_name="event_logs")
    op.drop_table("event_logs")
