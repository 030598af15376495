"""Trigger adapters for credit-card reconciliation.

Each adapter opens one ``db.client.session_scope`` so everything it does
commits together or not at all, and re-reads persisted state on every call.
Tolerances come from :func:`card_reconciliation.config.load_settings` unless
``settings`` is passed explicitly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from sqlalchemy.orm import Session

from db.client import session_scope

from .config import ToleranceSettings, load_settings
from .cycles import parse_cycle, window_contains
from .engine import load_bill, reconcile
from .errors import LinkConflictError
from .heuristics import bill_predicate_for
from .ingest.adapters.nubank_cc_csv import StatementRow, infer_billing_cycle
from .linking import apply_link, apply_unlink
from .logging_setup import get_logger
from .models import (
    CycleSummary,
    ImportResult,
    MatchDecision,
    MatchOutcome,
    ReconcileResult,
)
from .persistence import insert_statement_rows
from .status import cycle_overview, list_pending_cycles

logger = get_logger("card_reconciliation.api")


def _settings(settings: ToleranceSettings | None) -> ToleranceSettings:
    return settings if settings is not None else load_settings()


def _auto_reconcile(
    session: Session, owner_id: str, cycle: str, settings: ToleranceSettings
) -> ReconcileResult:
    decision = reconcile(session, owner_id, cycle, settings=settings)
    if decision.outcome is not MatchOutcome.AUTO_LINK:
        return ReconcileResult(decision)
    return ReconcileResult(decision, apply_link(session, decision, settings=settings))


def _held_back(decision: MatchDecision) -> MatchDecision:
    # The automatic pick could not be applied; the user has to choose.
    return replace(
        decision,
        outcome=MatchOutcome.DISAMBIGUATE,
        chosen_bill_id=None,
        confidence=None,
        amount_delta=None,
        mismatch=False,
    )


def import_statement(
    owner_id: str,
    rows: Sequence[StatementRow],
    *,
    billing_cycle: str | None = None,
    database_url: str | None = None,
    settings: ToleranceSettings | None = None,
) -> ImportResult:
    """Store a parsed card statement as pending rows, then try to reconcile it.

    The import stands whatever the reconciliation outcome. When the automatic
    pick conflicts with an existing link the rows stay pending and the result
    is reported as ``disambiguate``.
    """

    cfg = _settings(settings)
    cycle = billing_cycle or infer_billing_cycle(rows)
    parse_cycle(cycle)

    with session_scope(database_url=database_url) as session:
        ids, skipped = insert_statement_rows(
            session, owner_id=owner_id, billing_cycle=cycle, rows=rows
        )
        decision = reconcile(session, owner_id, cycle, settings=cfg)
        outcome = ReconcileResult(decision)
        if decision.outcome is MatchOutcome.AUTO_LINK:
            try:
                outcome = ReconcileResult(decision, apply_link(session, decision, settings=cfg))
            except LinkConflictError as exc:
                logger.warning(
                    "cycle %s owner %s: left pending after import: %s", cycle, owner_id, exc
                )
                outcome = ReconcileResult(_held_back(decision))

    return ImportResult(
        owner_id=owner_id,
        billing_cycle=cycle,
        imported_count=len(ids),
        skipped_count=skipped,
        transaction_ids=tuple(ids),
        reconciliation=outcome,
    )


def on_bill_created(
    owner_id: str,
    bill_id: str,
    *,
    database_url: str | None = None,
    settings: ToleranceSettings | None = None,
) -> list[ReconcileResult]:
    """Reconcile the pending cycles a newly created bill could pay.

    Transactions that do not look like a bill are ignored (empty result).
    Cycles are visited oldest first, so a bill goes to the earliest cycle it
    fits.
    """

    cfg = _settings(settings)
    is_bill_like = bill_predicate_for(cfg.bill_locale)

    with session_scope(database_url=database_url) as session:
        bill = load_bill(session, owner_id, bill_id)
        if not (bill.is_credit_card_payment or is_bill_like(bill.description or "")):
            logger.debug("transaction %s does not look like a bill; skipping", bill_id)
            return []

        cycles = sorted(
            p.billing_cycle
            for p in list_pending_cycles(session, owner_id)
            if window_contains(p.billing_cycle, bill.date, cfg.window_days)
        )
        results = [_auto_reconcile(session, owner_id, c, cfg) for c in cycles]

    linked = sum(1 for r in results if r.linked)
    logger.info(
        "bill %s owner %s: %d pending cycle(s) checked, %d linked",
        bill_id,
        owner_id,
        len(results),
        linked,
    )
    return results


def reconcile_cycle(
    owner_id: str,
    cycle: str,
    *,
    bill_id: str | None = None,
    force: bool = False,
    database_url: str | None = None,
    settings: ToleranceSettings | None = None,
) -> ReconcileResult:
    """Manual reconcile of one cycle.

    Without ``bill_id`` this behaves like the automatic trigger and returns
    candidates when it cannot decide. With ``bill_id`` it links to that bill:
    the bill must be a candidate at medium confidence or better unless
    ``force`` is set.
    """

    parse_cycle(cycle)
    cfg = _settings(settings)

    with session_scope(database_url=database_url) as session:
        if bill_id is None:
            return _auto_reconcile(session, owner_id, cycle, cfg)

        decision = reconcile(session, owner_id, cycle, settings=cfg)
        if decision.pending_count == 0:
            # Nothing pending: either already linked to this bill (no-op) or
            # a conflict that apply_link reports.
            chosen = MatchDecision(
                MatchOutcome.AUTO_LINK, owner_id, cycle, chosen_bill_id=bill_id
            )
        elif force:
            chosen = reconcile(session, owner_id, cycle, bill_id, settings=cfg)
        else:
            chosen = decision.choose(bill_id)
        return ReconcileResult(chosen, apply_link(session, chosen, settings=cfg))


def unlink_bill(owner_id: str, bill_id: str, *, database_url: str | None = None) -> dict:
    """Collapse ``bill_id`` and return the unlink payload."""

    with session_scope(database_url=database_url) as session:
        result = apply_unlink(session, owner_id, bill_id)
    return result.to_payload()


def pending_cycles(owner_id: str, *, database_url: str | None = None) -> list[dict]:
    """Dashboard banner payload: one entry per cycle still waiting for a bill."""

    with session_scope(database_url=database_url) as session:
        return [p.to_payload() for p in list_pending_cycles(session, owner_id)]


def reconciliation_status(
    owner_id: str, *, database_url: str | None = None
) -> list[CycleSummary]:
    with session_scope(database_url=database_url) as session:
        return cycle_overview(session, owner_id)


__all__ = [
    "import_statement",
    "on_bill_created",
    "reconcile_cycle",
    "unlink_bill",
    "pending_cycles",
    "reconciliation_status",
]
