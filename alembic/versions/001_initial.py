"""Initial schema: workspaces, users, contacts, job_runs.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the tenant table with the default workspace, the user mirror and
membership table, contacts with engagement columns, and the job_runs audit table.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DEFAULT_WORKSPACE_ID = "00000000-0000-0000-0000-000000000001"


def upgrade() -> None:
    # 1. Workspaces (tenant) + default workspace
    op.create_table(
        "workspaces",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.execute(
        sa.text(
            "INSERT INTO workspaces (id, name, created_at, updated_at) "
            "SELECT CAST(:id AS uuid), 'Default', now(), now() "
            "WHERE NOT EXISTS (SELECT 1 FROM workspaces WHERE id = CAST(:id AS uuid))"
        ).bindparams(id=DEFAULT_WORKSPACE_ID)
    )

    # 2. Users (identity-provider mirror) and membership
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    op.create_table(
        "user_workspaces",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "granted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("user_id", "workspace_id"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_user_workspaces_user_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_user_workspaces_workspace_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_user_workspaces_workspace_id",
        "user_workspaces",
        ["workspace_id"],
        unique=False,
    )

    # 3. Contacts
    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column(
            "relationship_nature",
            sa.String(length=64),
            server_default="unknown",
            nullable=False,
        ),
        sa.Column(
            "relationship_recency",
            sa.String(length=64),
            server_default="new",
            nullable=False,
        ),
        sa.Column(
            "relationship_awareness",
            sa.String(length=64),
            server_default="unaware",
            nullable=False,
        ),
        sa.Column("last_contacted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "do_not_contact_again",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("remind_me_on", sa.Date(), nullable=True),
        sa.Column("next_engagement_date", sa.Date(), nullable=True),
        sa.Column("next_engagement_purpose", sa.String(length=64), nullable=True),
        sa.Column("next_contact_note", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_contacts_workspace_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_contacts_workspace_id", "contacts", ["workspace_id"], unique=False)
    op.create_index(
        "ix_contacts_workspace_next_engagement",
        "contacts",
        ["workspace_id", "next_engagement_date"],
        unique=False,
    )

    # 4. Job runs (batch audit)
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_type", sa.String(length=64), nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("contacts_total", sa.Integer(), nullable=True),
        sa.Column("contacts_updated", sa.Integer(), nullable=True),
        sa.Column("contacts_cleared", sa.Integer(), nullable=True),
        sa.Column("error_count", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.id"],
            name="fk_job_runs_workspace_id",
            ondelete="SET NULL",
        ),
    )
    op.create_index(
        "ix_job_runs_type_workspace_started",
        "job_runs",
        ["job_type", "workspace_id", "started_at"],
        unique=False,
    )
    op.create_index(
        "ix_job_runs_idempotency_key",
        "job_runs",
        ["idempotency_key"],
        unique=False,
        postgresql_where=sa.text("idempotency_key IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("ix_job_runs_idempotency_key", table_name="job_runs")
    op.drop_index("ix_job_runs_type_workspace_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("ix_contacts_workspace_next_engagement", table_name="contacts")
    op.drop_index("ix_contacts_workspace_id", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("ix_user_workspaces_workspace_id", table_name="user_workspaces")
    op.drop_table("user_workspaces")
    op.drop_table("users")
    op.drop_table("workspaces")
