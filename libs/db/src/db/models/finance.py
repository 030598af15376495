from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------
# Reference: fa_categories
# ---------------------------


class FaCategory(Base):
    __tablename__ = "fa_categories"

    code: Mapped[str] = mapped_column(String, primary_key=True)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.true()
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: fa_transactions
# ---------------------------


class FaTransaction(Base):
    __tablename__ = "fa_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Every query in the reconciliation core is scoped by owner explicitly.
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    # Stored as a positive magnitude; direction lives in ``type``.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("fa_categories.code", deferrable=True, initially="DEFERRED"),
        nullable=True,
    )

    # Credit-card statement fields. ``billing_cycle`` is set only on rows
    # imported from a card statement (``YYYY-MM``).
    billing_cycle: Mapped[str | None] = mapped_column(String(7), nullable=True)
    credit_card_payment_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("fa_transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    installment_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installment_total: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Bill-payment fields. ``original_amount`` holds the pre-expansion amount
    # while ``expanded_at`` is set; both are cleared on collapse.
    is_credit_card_payment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false(), default=False
    )
    original_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    expanded_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_hidden: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false(), default=False
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false(), default=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("type in ('expense','income')", name="ck_fa_tx_type"),
        CheckConstraint("amount >= 0", name="ck_fa_tx_amount_magnitude"),
        CheckConstraint(
            "credit_card_payment_id IS NULL OR billing_cycle IS NOT NULL",
            name="ck_fa_tx_link_requires_cycle",
        ),
        CheckConstraint(
            "credit_card_payment_id IS NULL OR NOT is_credit_card_payment",
            name="ck_fa_tx_bill_not_linked",
        ),
        CheckConstraint(
            (
                "installment_number IS NULL OR "
                "(installment_number >= 1 AND installment_total >= installment_number)"
            ),
            name="ck_fa_tx_installment",
        ),
        Index("ix_fa_tx_owner_cycle", "owner_id", "billing_cycle"),
        Index("ix_fa_tx_owner_date", "owner_id", "date"),
        Index("ix_fa_tx_cc_payment", "credit_card_payment_id"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"FaTransaction(id={self.id!r}, date={self.date!s}, amount={self.amount!s}, "
            f"type={self.type!r}, billing_cycle={self.billing_cycle!r})"
        )


__all__ = [
    "Base",
    "FaCategory",
    "FaTransaction",
]
