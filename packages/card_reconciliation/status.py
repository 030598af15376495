"""Read-only status queries: pending banner and the per-cycle overview."""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.finance import FaTransaction

from .comparator import compare
from .cycles import parse_cycle
from .engine import bill_amount, card_total
from .errors import storage_errors
from .models import CycleState, CycleSummary, PendingCycle


def list_pending_cycles(session: Session, owner_id: str) -> list[PendingCycle]:
    """Cycles with card rows still waiting for a bill, newest cycle first."""

    stmt = (
        select(FaTransaction.billing_cycle, func.count(FaTransaction.id))
        .where(FaTransaction.owner_id == owner_id)
        .where(FaTransaction.billing_cycle.is_not(None))
        .where(FaTransaction.credit_card_payment_id.is_(None))
        .where(FaTransaction.is_deleted.is_(False))
        .where(FaTransaction.is_hidden.is_(False))
        .group_by(FaTransaction.billing_cycle)
        .order_by(FaTransaction.billing_cycle.desc())
    )
    with storage_errors("pending cycle lookup"):
        rows = session.execute(stmt).all()
    return [PendingCycle(billing_cycle=c, transaction_count=int(n)) for c, n in rows]


def cycle_state(session: Session, owner_id: str, cycle: str) -> CycleState:
    """``NO_DATA`` without card rows, ``PENDING`` while any row waits, else ``LINKED``."""

    parse_cycle(cycle)
    stmt = (
        select(FaTransaction.credit_card_payment_id)
        .where(FaTransaction.owner_id == owner_id)
        .where(FaTransaction.billing_cycle == cycle)
        .where(FaTransaction.is_deleted.is_(False))
        .where(FaTransaction.is_hidden.is_(False))
    )
    with storage_errors("cycle state lookup"):
        links = session.execute(stmt).scalars().all()
    if not links:
        return CycleState.NO_DATA
    if any(link is None for link in links):
        return CycleState.PENDING
    return CycleState.LINKED


def cycle_overview(session: Session, owner_id: str) -> list[CycleSummary]:
    """One summary per billing cycle that has card rows, newest first."""

    with storage_errors("cycle overview"):
        rows = (
            session.execute(
                select(FaTransaction)
                .where(FaTransaction.owner_id == owner_id)
                .where(FaTransaction.billing_cycle.is_not(None))
                .where(FaTransaction.is_deleted.is_(False))
                .where(FaTransaction.is_hidden.is_(False))
                .order_by(FaTransaction.billing_cycle.desc(), FaTransaction.date)
            )
            .scalars()
            .all()
        )
        by_cycle: dict[str, list[FaTransaction]] = defaultdict(list)
        for tx in rows:
            by_cycle[tx.billing_cycle].append(tx)

        bill_ids = {tx.credit_card_payment_id for tx in rows if tx.credit_card_payment_id}
        bills: dict[str, FaTransaction] = {}
        if bill_ids:
            stmt = select(FaTransaction).where(FaTransaction.id.in_(bill_ids))
            bills = {b.id: b for b in session.execute(stmt).scalars()}

    summaries: list[CycleSummary] = []
    for cycle, txs in by_cycle.items():
        pending = [t for t in txs if t.credit_card_payment_id is None]
        linked = [t for t in txs if t.credit_card_payment_id is not None]
        state = CycleState.PENDING if pending else CycleState.LINKED
        bill = bills.get(linked[0].credit_card_payment_id) if linked else None
        paid = bill_amount(bill) if bill is not None else None
        delta = compare(card_total(linked), paid).delta_abs if paid is not None else None
        summaries.append(
            CycleSummary(
                billing_cycle=cycle,
                state=state,
                transaction_count=len(txs),
                pending_count=len(pending),
                cc_total=card_total(txs),
                bill_id=bill.id if bill is not None else None,
                bill_amount=paid,
                amount_delta=delta,
            )
        )
    return summaries


__all__ = ["list_pending_cycles", "cycle_state", "cycle_overview"]
