"""planning_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Creates the tables owned by the planning core: planning_events,
planning_event_comments, documents, planning_event_documents, audit_logs.
On PostgreSQL, overlapping bookings of one resource are additionally
rejected by exclusion constraints (SQLSTATE 23P01).
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

KIND = sa.Enum("operation", "maintenance", "custom", name="planningeventkind")
STATUS = sa.Enum("planned", "in_progress", "done", "cancelled", "blocked", name="planningeventstatus")
PRIORITY = sa.Enum("low", "normal", "high", "critical", name="planningpriority")

# Same predicate as the application-level conflict check
_EXCLUSION_WHERE = "archived_at IS NULL AND allow_overlap IS NOT TRUE"


def upgrade() -> None:
    # --- planning_events ---
    op.create_table(
        "planning_events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("kind", KIND, nullable=False, server_default="operation"),
        sa.Column("status", STATUS, nullable=False, server_default="planned"),
        sa.Column("priority", PRIORITY, nullable=False, server_default="normal"),
        sa.Column("order_id", sa.Integer, nullable=True),
        sa.Column("operation_id", sa.String(36), nullable=True),
        sa.Column("machine_id", sa.String(36), nullable=True),
        sa.Column("workstation_id", sa.String(36), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("start_time_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("allow_overlap", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(36), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by", sa.String(36), nullable=True),
        sa.CheckConstraint("start_time_utc < end_time_utc", name="ck_planning_events_interval"),
        sa.CheckConstraint(
            "(machine_id IS NULL AND workstation_id IS NOT NULL) "
            "OR (machine_id IS NOT NULL AND workstation_id IS NULL)",
            name="ck_planning_events_single_resource",
        ),
    )
    op.create_index("ix_planning_events_order_id", "planning_events", ["order_id"])
    op.create_index("ix_planning_events_operation_id", "planning_events", ["operation_id"])
    op.create_index(
        "ix_planning_events_machine_window", "planning_events",
        ["machine_id", "start_time_utc", "end_time_utc"],
    )
    op.create_index(
        "ix_planning_events_workstation_window", "planning_events",
        ["workstation_id", "start_time_utc", "end_time_utc"],
    )

    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        for column in ("machine_id", "workstation_id"):
            op.execute(
                f"ALTER TABLE planning_events ADD CONSTRAINT ex_planning_events_{column}_overlap "
                f"EXCLUDE USING gist ({column} WITH =, "
                f"tstzrange(start_time_utc, end_time_utc, '[)') WITH &&) "
                f"WHERE ({column} IS NOT NULL AND {_EXCLUSION_WHERE})"
            )

    # --- planning_event_comments ---
    op.create_table(
        "planning_event_comments",
        sa.Column("comment_id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("planning_events.event_id"), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_planning_event_comments_event_id", "planning_event_comments", ["event_id"])

    # --- documents ---
    op.create_table(
        "documents",
        sa.Column("document_id", sa.String(36), primary_key=True),
        sa.Column("document_name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- planning_event_documents ---
    op.create_table(
        "planning_event_documents",
        sa.Column("event_id", sa.String(36), sa.ForeignKey("planning_events.event_id"), primary_key=True),
        sa.Column("document_id", sa.String(36), sa.ForeignKey("documents.document_id"), primary_key=True),
        sa.Column("type", sa.String(20), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- audit_logs ---
    op.create_table(
        "audit_logs",
        sa.Column("audit_id", sa.String(36), primary_key=True),
        sa.Column("actor_user_id", sa.String(36), nullable=False),
        sa.Column("event_type", sa.String(20), nullable=False, server_default="ACTION"),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=True),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("path", sa.String(500), nullable=True),
        sa.Column("page_key", sa.String(100), nullable=True),
        sa.Column("client_session_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("planning_event_documents")
    op.drop_table("documents")
    op.drop_table("planning_event_comments")
    op.drop_table("planning_events")
    PRIORITY.drop(op.get_bind(), checkfirst=True)
    STATUS.drop(op.get_bind(), checkfirst=True)
    KIND.drop(op.get_bind(), checkfirst=True)
