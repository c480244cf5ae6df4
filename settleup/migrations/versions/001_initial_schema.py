"""Initial schema — the requests table, its constraints and indexes.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

The status column is a VARCHAR with a CHECK constraint rather than a native
PostgreSQL enum; the model maps it with Enum(native_enum=False).
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    op.create_table(
        "requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_by_id", sa.String(length=64), nullable=False),
        sa.Column("created_by_label", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("request_to_id", sa.String(length=64), nullable=False),
        sa.Column("request_to_label", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.String(length=16),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settled_by", sa.String(length=64), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_requests_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_requests_description_nonempty",
        ),
        sa.CheckConstraint(
            "created_by_id <> request_to_id",
            name="ck_requests_no_self_request",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'settled')",
            name="ck_requests_status_valid",
        ),
    )

    op.create_index("ix_requests_group_id", "requests", ["group_id"])
    op.create_index("idx_requests_group_status", "requests", ["group_id", "status"])


def downgrade() -> None:
    op.drop_index("idx_requests_group_status", table_name="requests")
    op.drop_index("ix_requests_group_id", table_name="requests")
    op.drop_table("requests")
