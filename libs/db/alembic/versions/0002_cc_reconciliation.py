# ruff: noqa: I001
"""Credit-card statement reconciliation columns.

Adds the billing-cycle/link fields carried by imported card rows and the
expansion snapshot fields carried by bill payments, plus the constraints that
keep the two roles disjoint.

Revision ID: 0002_cc_reconciliation
Revises: 0001_fa_core
Create Date: 2025-12-14
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_cc_reconciliation"
down_revision: str | None = "0001_fa_core"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Card-row fields
    op.add_column("fa_transactions", sa.Column("billing_cycle", sa.String(length=7), nullable=True))
    op.add_column(
        "fa_transactions",
        sa.Column("credit_card_payment_id", sa.String(length=36), nullable=True),
    )
    op.add_column("fa_transactions", sa.Column("installment_number", sa.Integer(), nullable=True))
    op.add_column("fa_transactions", sa.Column("installment_total", sa.Integer(), nullable=True))

    # Bill-payment fields
    op.add_column(
        "fa_transactions",
        sa.Column(
            "is_credit_card_payment",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
    )
    op.add_column("fa_transactions", sa.Column("original_amount", sa.Numeric(18, 2), nullable=True))
    op.add_column(
        "fa_transactions",
        sa.Column("expanded_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_foreign_key(
        "fk_fa_tx_cc_payment",
        "fa_transactions",
        "fa_transactions",
        ["credit_card_payment_id"],
        ["id"],
        ondelete="SET NULL",
    )
    op.create_check_constraint(
        "ck_fa_tx_link_requires_cycle",
        "fa_transactions",
        "credit_card_payment_id IS NULL OR billing_cycle IS NOT NULL",
    )
    op.create_check_constraint(
        "ck_fa_tx_bill_not_linked",
        "fa_transactions",
        "credit_card_payment_id IS NULL OR NOT is_credit_card_payment",
    )
    op.create_check_constraint(
        "ck_fa_tx_installment",
        "fa_transactions",
        "installment_number IS NULL OR "
        "(installment_number >= 1 AND installment_total >= installment_number)",
    )

    # Pending-cycle lookups are always (owner, cycle) scoped; links are
    # resolved from the bill side on collapse.
    op.create_index(
        "ix_fa_tx_owner_cycle",
        "fa_transactions",
        ["owner_id", "billing_cycle"],
        unique=False,
    )
    op.create_index(
        "ix_fa_tx_cc_payment",
        "fa_transactions",
        ["credit_card_payment_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_fa_tx_cc_payment", table_name="fa_transactions")
    op.drop_index("ix_fa_tx_owner_cycle", table_name="fa_transactions")
    op.drop_constraint("ck_fa_tx_installment", "fa_transactions", type_="check")
    op.drop_constraint("ck_fa_tx_bill_not_linked", "fa_transactions", type_="check")
    op.drop_constraint("ck_fa_tx_link_requires_cycle", "fa_transactions", type_="check")
    op.drop_constraint("fk_fa_tx_cc_payment", "fa_transactions", type_="foreignkey")
    op.drop_column("fa_transactions", "expanded_at")
    op.drop_column("fa_transactions", "original_amount")
    op.drop_column("fa_transactions", "is_credit_card_payment")
    op.drop_column("fa_transactions", "installment_total")
    op.drop_column("fa_transactions", "installment_number")
    op.drop_column("fa_transactions", "credit_card_payment_id")
    op.drop_column("fa_transactions", "billing_cycle")
