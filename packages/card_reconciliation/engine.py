"""Reconciliation engine: decide how a cycle's pending card rows meet a bill.

``reconcile`` is a pure decision over one read of the current state. It never
writes; :mod:`card_reconciliation.linking` applies decisions.

Decision policy
---------------
- no pending rows, or no candidates         -> ``no_match``
- one candidate at EXACT/HIGH/MEDIUM        -> ``auto_link``
- one candidate at NO_MATCH                 -> ``disambiguate`` (needs confirmation)
- two or more candidates                    -> ``disambiguate`` (never auto-picked)
- ``forced_bill_id``                        -> ``auto_link`` to that bill, no gate,
                                               ``mismatch`` set when below MEDIUM
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import FaTransaction

from .comparator import compare, to_money
from .config import DEFAULT_SETTINGS, ToleranceSettings
from .errors import BillNotFoundError, storage_errors
from .finder import find_candidates
from .heuristics import BillPredicate
from .logging_setup import get_logger
from .models import BillCandidate, MatchDecision, MatchOutcome, ScoredCandidate
from .states import Expanded, bill_state

logger = get_logger("card_reconciliation.engine")


def pending_rows_stmt(owner_id: str, cycle: str):
    return (
        select(FaTransaction)
        .where(FaTransaction.owner_id == owner_id)
        .where(FaTransaction.billing_cycle == cycle)
        .where(FaTransaction.credit_card_payment_id.is_(None))
        .where(FaTransaction.is_deleted.is_(False))
        .where(FaTransaction.is_hidden.is_(False))
        .order_by(FaTransaction.date, FaTransaction.id)
    )


def load_pending_rows(session: Session, owner_id: str, cycle: str) -> list[FaTransaction]:
    with storage_errors("pending row lookup"):
        return list(session.execute(pending_rows_stmt(owner_id, cycle)).scalars().all())


def card_total(rows: Iterable[FaTransaction]) -> Decimal:
    """Statement total: purchases add, refunds/credits subtract."""

    total = Decimal("0.00")
    for tx in rows:
        magnitude = abs(tx.amount)
        total += magnitude if tx.type == "expense" else -magnitude
    return to_money(total)


def bill_amount(tx: FaTransaction) -> Decimal:
    """Amount the bill was paid for, looking through an active expansion."""

    state = bill_state(tx)
    if isinstance(state, Expanded):
        return abs(state.original_amount)
    return abs(tx.amount)


def load_bill(session: Session, owner_id: str, bill_id: str) -> FaTransaction:
    """Fetch a linkable bill or raise :class:`BillNotFoundError`."""

    with storage_errors("bill lookup"):
        tx = session.execute(
            select(FaTransaction)
            .where(FaTransaction.id == bill_id)
            .where(FaTransaction.owner_id == owner_id)
        ).scalar_one_or_none()
    if tx is None or tx.is_deleted:
        raise BillNotFoundError(bill_id)
    if tx.type != "expense":
        raise BillNotFoundError(bill_id, "not an expense")
    if tx.billing_cycle is not None:
        raise BillNotFoundError(bill_id, "is a credit-card statement row")
    return tx


def score_candidates(
    candidates: Sequence[BillCandidate],
    cc_total: Decimal,
    settings: ToleranceSettings = DEFAULT_SETTINGS,
) -> tuple[ScoredCandidate, ...]:
    scored = [ScoredCandidate(c, compare(cc_total, c.amount, settings)) for c in candidates]
    scored.sort(
        key=lambda sc: (
            -sc.candidate.date.toordinal(),
            sc.comparison.delta_abs,
            sc.candidate.id,
        )
    )
    return tuple(scored)


def reconcile(
    session: Session,
    owner_id: str,
    cycle: str,
    forced_bill_id: str | None = None,
    *,
    is_bill_like: BillPredicate | None = None,
    settings: ToleranceSettings = DEFAULT_SETTINGS,
) -> MatchDecision:
    """Decide how the pending card rows of ``(owner_id, cycle)`` should be linked."""

    pending = load_pending_rows(session, owner_id, cycle)
    if not pending:
        logger.debug("cycle %s owner %s: nothing pending", cycle, owner_id)
        return MatchDecision(MatchOutcome.NO_MATCH, owner_id, cycle)

    total = card_total(pending)
    base = MatchDecision(
        MatchOutcome.NO_MATCH,
        owner_id,
        cycle,
        cc_total=total,
        pending_count=len(pending),
    )

    if forced_bill_id is not None:
        return _forced_decision(session, base, forced_bill_id, settings)

    candidates = find_candidates(
        session, owner_id, cycle, is_bill_like=is_bill_like, settings=settings
    )
    scored = score_candidates(candidates, total, settings)

    if not scored:
        logger.info(
            "cycle %s owner %s: %d row(s) totalling %s stay pending (no bill)",
            cycle,
            owner_id,
            len(pending),
            total,
        )
        return base

    if len(scored) == 1 and scored[0].tier.linkable:
        only = scored[0]
        logger.info(
            "cycle %s owner %s: auto-link to bill %s (%s, delta %s)",
            cycle,
            owner_id,
            only.bill_id,
            only.tier.value,
            only.comparison.delta_abs,
        )
        return _with(
            base,
            outcome=MatchOutcome.AUTO_LINK,
            candidates=scored,
            chosen=only,
        )

    logger.info(
        "cycle %s owner %s: %d candidate(s) need a decision",
        cycle,
        owner_id,
        len(scored),
    )
    return _with(base, outcome=MatchOutcome.DISAMBIGUATE, candidates=scored)


def _forced_decision(
    session: Session,
    base: MatchDecision,
    bill_id: str,
    settings: ToleranceSettings,
) -> MatchDecision:
    bill = load_bill(session, base.owner_id, bill_id)
    candidate = BillCandidate(
        id=bill.id,
        date=bill.date,
        amount=bill_amount(bill),
        description=bill.description or "",
        category=bill.category,
    )
    (scored,) = score_candidates([candidate], base.cc_total, settings)
    decision = _with(
        base,
        outcome=MatchOutcome.AUTO_LINK,
        candidates=(scored,),
        chosen=scored,
        forced=True,
    )
    if decision.mismatch:
        logger.warning(
            "cycle %s owner %s: forced link to bill %s despite delta %s",
            base.billing_cycle,
            base.owner_id,
            bill_id,
            scored.comparison.delta_abs,
        )
    return decision


def _with(
    base: MatchDecision,
    *,
    outcome: MatchOutcome,
    candidates: tuple[ScoredCandidate, ...],
    chosen: ScoredCandidate | None = None,
    forced: bool = False,
) -> MatchDecision:
    return MatchDecision(
        outcome=outcome,
        owner_id=base.owner_id,
        billing_cycle=base.billing_cycle,
        cc_total=base.cc_total,
        pending_count=base.pending_count,
        candidates=candidates,
        chosen_bill_id=chosen.bill_id if chosen else None,
        confidence=chosen.tier if chosen else None,
        amount_delta=chosen.comparison.delta_abs if chosen else None,
        forced=forced,
        mismatch=bool(chosen and not chosen.tier.linkable),
    )


__all__ = [
    "reconcile",
    "load_pending_rows",
    "load_bill",
    "card_total",
    "bill_amount",
    "score_candidates",
    "pending_rows_stmt",
]
