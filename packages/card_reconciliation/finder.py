"""Bill candidate lookup for a billing cycle.

Read-only. Candidates are the owner's visible expense transactions dated
inside the cycle's search window that are not themselves card rows, have not
been expanded yet, and look like a bill payment (explicit flag or the
description predicate).
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import FaTransaction

from .config import DEFAULT_SETTINGS, ToleranceSettings
from .cycles import candidate_window
from .errors import storage_errors
from .heuristics import BillPredicate, bill_predicate_for
from .logging_setup import get_logger
from .models import BillCandidate

logger = get_logger("card_reconciliation.finder")


def _to_candidate(tx: FaTransaction) -> BillCandidate:
    return BillCandidate(
        id=tx.id,
        date=tx.date,
        amount=abs(tx.amount),
        description=tx.description or "",
        category=tx.category,
    )


def find_candidates(
    session: Session,
    owner_id: str,
    cycle: str,
    *,
    is_bill_like: BillPredicate | None = None,
    settings: ToleranceSettings = DEFAULT_SETTINGS,
) -> list[BillCandidate]:
    """Return bill candidates for ``(owner_id, cycle)``, most recent first.

    Ties on date are ordered by id here; the engine re-sorts ties by amount
    delta once it knows the card total.
    """

    predicate = is_bill_like or bill_predicate_for(settings.bill_locale)
    start, end = candidate_window(cycle, settings.window_days)

    stmt = (
        select(FaTransaction)
        .where(FaTransaction.owner_id == owner_id)
        .where(FaTransaction.type == "expense")
        .where(FaTransaction.date >= start, FaTransaction.date <= end)
        .where(FaTransaction.expanded_at.is_(None))
        .where(FaTransaction.billing_cycle.is_(None))
        .where(FaTransaction.credit_card_payment_id.is_(None))
        .where(FaTransaction.is_deleted.is_(False))
        .where(FaTransaction.is_hidden.is_(False))
        .order_by(FaTransaction.date.desc(), FaTransaction.id)
    )
    with storage_errors("bill candidate lookup"):
        rows = session.execute(stmt).scalars().all()

    candidates = [
        _to_candidate(tx)
        for tx in rows
        if tx.is_credit_card_payment or predicate(tx.description or "")
    ]
    logger.debug(
        "cycle %s owner %s: %d candidate(s) in window %s..%s",
        cycle,
        owner_id,
        len(candidates),
        start,
        end,
    )
    return candidates


__all__ = ["find_candidates"]
