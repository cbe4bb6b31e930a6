"""Automation engine tables

Creates tables for automations, their versions and run history:
- automations: Project-scoped automation rules (soft-deleted only)
- automation_versions: Immutable graph snapshots, gaplessly numbered
- automation_executions: One row per execution or dry run
- automation_run_logs: One row per executed condition/action step

Revision ID: 001_automation_engine
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_automation_engine"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create automation engine tables."""

    # ============================================================================
    # Create automations table
    # ============================================================================

    op.create_table(
        "automations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean,
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("current_version_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_automations_project_id", "automations", ["project_id"])
    op.create_index(
        "ix_automations_project_active",
        "automations",
        ["project_id", "is_active"],
    )

    # ============================================================================
    # Create automation_versions table
    # ============================================================================

    op.create_table(
        "automation_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "automation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("automations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("definition", postgresql.JSONB, nullable=False),
        sa.Column(
            "is_enabled",
            sa.Boolean,
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "automation_id",
            "version_number",
            name="uq_automation_versions_automation_number",
        ),
    )
    op.create_index(
        "ix_automation_versions_automation_id",
        "automation_versions",
        ["automation_id"],
    )

    # ============================================================================
    # Create automation_executions table
    # ============================================================================

    op.create_table(
        "automation_executions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "automation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("automations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "version_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("automation_versions.id"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "trigger_payload",
            postgresql.JSONB,
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "is_simulation",
            sa.Boolean,
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("requested_by", sa.String(255), nullable=True),
        sa.Column("error_code", sa.String(50), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("causation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "causation_chain",
            postgresql.JSONB,
            nullable=False,
            server_default="[]",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_automation_executions_automation_id",
        "automation_executions",
        ["automation_id"],
    )
    op.create_index(
        "ix_automation_executions_version_id",
        "automation_executions",
        ["version_id"],
    )
    op.create_index(
        "ix_automation_executions_history",
        "automation_executions",
        ["automation_id", "is_simulation", "started_at"],
    )

    # ============================================================================
    # Create automation_run_logs table
    # ============================================================================

    op.create_table(
        "automation_run_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "execution_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("automation_executions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("node_id", sa.String(255), nullable=False),
        sa.Column("node_kind", sa.String(20), nullable=False),
        sa.Column("node_type", sa.String(100), nullable=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("input", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("output", postgresql.JSONB, nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("error_code", sa.String(50), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_automation_run_logs_execution_id",
        "automation_run_logs",
        ["execution_id"],
    )


def downgrade() -> None:
    """Drop automation engine tables."""
    op.drop_index("ix_automation_run_logs_execution_id", table_name="automation_run_logs")
    op.drop_table("automation_run_logs")

    op.drop_index("ix_automation_executions_history", table_name="automation_executions")
    op.drop_index("ix_automation_executions_version_id", table_name="automation_executions")
    op.drop_index(
        "ix_automation_executions_automation_id", table_name="automation_executions"
    )
    op.drop_table("automation_executions")

    op.drop_index("ix_automation_versions_automation_id", table_name="automation_versions")
    op.drop_table("automation_versions")

    op.drop_index("ix_automations_project_active", table_name="automations")
    op.drop_index("ix_automations_project_id", table_name="automations")
    op.drop_table("automations")
