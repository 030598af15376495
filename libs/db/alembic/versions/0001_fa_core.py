# ruff: noqa: I001
"""Finance core tables: categories and transactions.

Revision ID: 0001_fa_core
Revises: None
Create Date: 2025-11-02
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_fa_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # fa_categories
    op.create_table(
        "fa_categories",
        sa.Column("code", sa.Text(), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # fa_transactions
    op.create_table(
        "fa_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column(
            "is_hidden",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "is_deleted",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["category"],
            ["fa_categories.code"],
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.CheckConstraint("type in ('expense','income')", name="ck_fa_tx_type"),
        sa.CheckConstraint("amount >= 0", name="ck_fa_tx_amount_magnitude"),
    )

    op.create_index(
        "ix_fa_tx_owner_date", "fa_transactions", ["owner_id", "date"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_fa_tx_owner_date", table_name="fa_transactions")
    op.drop_table("fa_transactions")
    op.drop_table("fa_categories")
