"""Persistence integration for card_reconciliation.

Functions here write transactions to the shared database owned by
``libs/db``. They take a session from ``db.client`` and never commit; the
caller's ``session_scope`` decides.

Scope:
- Insert credit-card statement rows as pending transactions of a cycle,
  skipping rows already imported for that cycle.
- Record a single bank-account transaction (e.g., a bill payment).
"""

from __future__ import annotations

import datetime as dt
from collections import Counter
from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import FaTransaction

from .comparator import to_money
from .cycles import parse_cycle
from .errors import storage_errors
from .ingest.adapters.nubank_cc_csv import StatementRow
from .logging_setup import get_logger

logger = get_logger("card_reconciliation.persistence")

type RowKey = tuple[dt.date, str, Decimal, str]


def _row_key(date: dt.date, description: str, amount: Decimal, type_: str) -> RowKey:
    return (date, description.strip(), to_money(abs(amount)), type_)


def insert_statement_rows(
    session: Session,
    *,
    owner_id: str,
    billing_cycle: str,
    rows: Iterable[StatementRow],
) -> tuple[list[str], int]:
    """Insert statement rows as pending card transactions of ``billing_cycle``.

    Re-importing a statement is idempotent: a row whose (date, description,
    amount, type) already exists in the cycle is skipped, counting duplicates
    so two identical purchases on the same day both survive a first import.

    Returns ``(inserted_ids, skipped_count)``.
    """

    parse_cycle(billing_cycle)

    with storage_errors(f"import into cycle {billing_cycle}"):
        existing = session.execute(
            select(
                FaTransaction.date,
                FaTransaction.description,
                FaTransaction.amount,
                FaTransaction.type,
            )
            .where(FaTransaction.owner_id == owner_id)
            .where(FaTransaction.billing_cycle == billing_cycle)
            .where(FaTransaction.is_deleted.is_(False))
        ).all()
        seen = Counter(_row_key(*r) for r in existing)

        inserted: list[FaTransaction] = []
        skipped = 0
        for row in rows:
            key = _row_key(row.date, row.description, row.amount, row.type)
            if seen[key] > 0:
                seen[key] -= 1
                skipped += 1
                continue
            tx = FaTransaction(
                owner_id=owner_id,
                date=row.date,
                description=row.description,
                amount=to_money(abs(row.amount)),
                type=row.type,
                billing_cycle=billing_cycle,
                installment_number=row.installment_number,
                installment_total=row.installment_total,
            )
            session.add(tx)
            inserted.append(tx)
        session.flush()

    logger.info(
        "cycle %s owner %s: inserted %d row(s), skipped %d already imported",
        billing_cycle,
        owner_id,
        len(inserted),
        skipped,
    )
    return [tx.id for tx in inserted], skipped


def record_transaction(
    session: Session,
    *,
    owner_id: str,
    date: dt.date,
    description: str,
    amount: Decimal | str | float,
    type: str = "expense",
    is_credit_card_payment: bool = False,
    category: str | None = None,
) -> FaTransaction:
    """Insert one bank-account transaction and return it (flushed, with id)."""

    if type not in ("expense", "income"):
        raise ValueError(f"transaction type must be 'expense' or 'income', got {type!r}")
    tx = FaTransaction(
        owner_id=owner_id,
        date=date,
        description=description.strip(),
        amount=abs(to_money(amount)),
        type=type,
        is_credit_card_payment=is_credit_card_payment,
        category=category,
    )
    with storage_errors("record transaction"):
        session.add(tx)
        session.flush()
    return tx


__all__ = ["insert_statement_rows", "record_transaction"]
