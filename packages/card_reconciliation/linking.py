"""Link/unlink state manager (expand and collapse).

Both operations lock the rows they touch (``SELECT ... FOR UPDATE`` with
``populate_existing`` so the identity map reflects the locked version), check
the engine's decision against that fresh state, and flush their writes. They
run inside the caller's transaction: commit at the caller, and a failure
anywhere leaves nothing behind once the caller's ``session_scope`` rolls back.

Concurrent attempts on the same cycle serialize on the card rows. The loser
sees the winner's link: a no-op when it targets the same bill, a
:class:`~card_reconciliation.errors.LinkConflictError` otherwise.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import FaTransaction

from .comparator import compare
from .config import DEFAULT_SETTINGS, ToleranceSettings
from .engine import bill_amount, card_total
from .errors import BillNotFoundError, LinkConflictError, NotExpandedError, storage_errors
from .logging_setup import get_logger
from .models import LinkResult, MatchDecision, UnlinkResult
from .states import Expanded, Plain, bill_state, collapse_bill, expand_bill, link_row, unlink_row

logger = get_logger("card_reconciliation.linking")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def _lock_bill(session: Session, owner_id: str, bill_id: str) -> FaTransaction:
    tx = session.execute(
        select(FaTransaction)
        .where(FaTransaction.id == bill_id)
        .where(FaTransaction.owner_id == owner_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if tx is None or tx.is_deleted:
        raise BillNotFoundError(bill_id)
    return tx


def _lock_cycle_rows(session: Session, owner_id: str, cycle: str) -> list[FaTransaction]:
    return list(
        session.execute(
            select(FaTransaction)
            .where(FaTransaction.owner_id == owner_id)
            .where(FaTransaction.billing_cycle == cycle)
            .where(FaTransaction.is_deleted.is_(False))
            .order_by(FaTransaction.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )


def _lock_rows_linked_to(session: Session, owner_id: str, bill_id: str) -> list[FaTransaction]:
    return list(
        session.execute(
            select(FaTransaction)
            .where(FaTransaction.owner_id == owner_id)
            .where(FaTransaction.credit_card_payment_id == bill_id)
            .order_by(FaTransaction.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )


def apply_link(
    session: Session,
    decision: MatchDecision,
    *,
    settings: ToleranceSettings = DEFAULT_SETTINGS,
    now: Callable[[], dt.datetime] = _utcnow,
) -> LinkResult:
    """Link every pending card row of the decision's cycle to its chosen bill.

    Raises ``ValueError`` when the decision has no chosen bill (``no_match``
    or an unresolved ``disambiguate``).
    """

    bill_id = decision.chosen_bill_id
    if bill_id is None:
        raise ValueError(
            f"decision for cycle {decision.billing_cycle} has no chosen bill "
            f"(outcome={decision.outcome.value}); resolve it with choose() first"
        )
    owner_id, cycle = decision.owner_id, decision.billing_cycle

    with storage_errors(f"link cycle {cycle}"):
        bill = _lock_bill(session, owner_id, bill_id)
        if bill.type != "expense" or bill.billing_cycle is not None:
            raise BillNotFoundError(bill_id, "not a bill payment")
        rows = _lock_cycle_rows(session, owner_id, cycle)

        other_bills = sorted(
            {r.credit_card_payment_id for r in rows if r.credit_card_payment_id}
            - {bill_id}
        )
        if other_bills:
            raise LinkConflictError(
                f"cycle {cycle} is already linked to bill {other_bills[0]}"
            )
        if isinstance(bill_state(bill), Expanded):
            foreign = [
                r
                for r in _lock_rows_linked_to(session, owner_id, bill_id)
                if r.billing_cycle != cycle
            ]
            if foreign:
                raise LinkConflictError(
                    f"bill {bill_id} is already expanded for cycle {foreign[0].billing_cycle}"
                )

        already = [r for r in rows if r.credit_card_payment_id == bill_id]
        pending = [r for r in rows if r.credit_card_payment_id is None and not r.is_hidden]
        linked = already + pending
        comparison = compare(card_total(linked), bill_amount(bill), settings)

        if not pending:
            if not already:
                raise LinkConflictError(f"cycle {cycle} has no card rows left to link")
            logger.info(
                "cycle %s owner %s: already linked to bill %s (%d rows); no-op",
                cycle,
                owner_id,
                bill_id,
                len(already),
            )
            return LinkResult(
                owner_id=owner_id,
                billing_cycle=cycle,
                bill_id=bill_id,
                linked_count=len(already),
                tier=comparison.tier,
                amount_delta=comparison.delta_abs,
                already_linked=True,
                mismatch=not comparison.tier.linkable,
            )

        if not comparison.tier.linkable and not decision.forced:
            # Rows changed since the decision; an unconfirmed link below
            # medium confidence is never applied.
            raise LinkConflictError(
                f"cycle {cycle} total changed to {card_total(linked)}; reconcile again"
            )

        for r in pending:
            link_row(r, bill_id)
        expand_bill(bill, now())
        session.flush()

    logger.info(
        "cycle %s owner %s: linked %d row(s) to bill %s (%s, delta %s)",
        cycle,
        owner_id,
        len(pending),
        bill_id,
        comparison.tier.value,
        comparison.delta_abs,
    )
    return LinkResult(
        owner_id=owner_id,
        billing_cycle=cycle,
        bill_id=bill_id,
        linked_count=len(linked),
        tier=comparison.tier,
        amount_delta=comparison.delta_abs,
        already_linked=False,
        mismatch=not comparison.tier.linkable,
    )


def apply_unlink(session: Session, owner_id: str, bill_id: str) -> UnlinkResult:
    """Collapse ``bill_id``: restore its amount and return its card rows to pending."""

    with storage_errors(f"unlink bill {bill_id}"):
        bill = _lock_bill(session, owner_id, bill_id)
        if isinstance(bill_state(bill), Plain):
            raise NotExpandedError(bill_id)
        rows = _lock_rows_linked_to(session, owner_id, bill_id)
        for r in rows:
            unlink_row(r)
        collapse_bill(bill)
        session.flush()

    restored = [r for r in rows if not r.is_deleted]
    cycles = sorted({r.billing_cycle for r in restored if r.billing_cycle})
    logger.info(
        "bill %s owner %s: collapsed; %d row(s) back to pending",
        bill_id,
        owner_id,
        len(restored),
    )
    return UnlinkResult(
        owner_id=owner_id,
        bill_id=bill_id,
        billing_cycle=cycles[0] if cycles else None,
        restored_count=len(restored),
        restored_amount=bill.amount,
    )


__all__ = ["apply_link", "apply_unlink"]
