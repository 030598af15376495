from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from card_reconciliation.engine import reconcile
from card_reconciliation.errors import BillNotFoundError, ConfirmationRequiredError
from card_reconciliation.linking import apply_link
from card_reconciliation.models import ConfidenceTier, MatchOutcome
from db.client import session_scope

from tests.helpers.db import OWNER, add_bill, add_cc_rows, fetch, seed

D = Decimal
CYCLE = "2025-12"


def _decide(database_url: str, cycle: str = CYCLE, **kwargs):
    with session_scope(database_url=database_url) as session:
        return reconcile(session, OWNER, cycle, **kwargs)


# ---- Outcomes -----------------------------------------------------------------


def test_exact_single_bill_auto_links(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="1124.77")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["500.00", "400.00", "224.77"])

    decision = _decide(database_url)

    assert decision.outcome is MatchOutcome.AUTO_LINK
    assert decision.chosen_bill_id == bill
    assert decision.confidence is ConfidenceTier.EXACT
    assert decision.cc_total == D("1124.77")
    assert decision.pending_count == 3
    assert not decision.mismatch

    with session_scope(database_url=database_url) as session:
        result = apply_link(session, decision)
    assert result.linked_count == 3

    after = fetch(database_url, bill)
    assert after.amount == D("0.00")
    assert after.original_amount == D("1124.77")
    assert after.expanded_at is not None


def test_within_tolerance_auto_links_with_delta(database_url: str) -> None:
    seed(database_url, add_bill, date=dt.date(2026, 1, 8), amount="1010.00")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["1000.00"])

    decision = _decide(database_url)

    assert decision.outcome is MatchOutcome.AUTO_LINK
    assert decision.confidence is ConfidenceTier.MEDIUM
    assert decision.amount_delta == D("10.00")


def test_two_candidates_always_disambiguate(database_url: str) -> None:
    small = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="500.00")
    exact = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="1000.00")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["600.00", "400.00"])

    decision = _decide(database_url)

    assert decision.outcome is MatchOutcome.DISAMBIGUATE
    assert decision.chosen_bill_id is None
    assert [(c.bill_id, c.tier) for c in decision.candidates] == [
        (exact, ConfidenceTier.EXACT),
        (small, ConfidenceTier.NO_MATCH),
    ]

    chosen = decision.choose(exact)
    with session_scope(database_url=database_url) as session:
        result = apply_link(session, chosen)
    assert result.bill_id == exact
    assert result.linked_count == 2
    assert fetch(database_url, exact).amount == D("0.00")
    assert fetch(database_url, small).amount == D("500.00")


def test_candidates_sorted_by_date_then_delta(database_url: str) -> None:
    older = seed(database_url, add_bill, date=dt.date(2025, 12, 1), amount="100.00")
    newer_far = seed(database_url, add_bill, date=dt.date(2025, 12, 20), amount="90.00")
    newer_near = seed(database_url, add_bill, date=dt.date(2025, 12, 20), amount="99.00")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["100.00"])

    decision = _decide(database_url)

    assert [c.bill_id for c in decision.candidates] == [newer_near, newer_far, older]


def test_no_bill_leaves_rows_pending(database_url: str) -> None:
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["10.00", "20.00", "30.00"])

    decision = _decide(database_url)

    assert decision.outcome is MatchOutcome.NO_MATCH
    assert decision.pending_count == 3
    assert decision.cc_total == D("60.00")
    assert decision.candidates == ()


def test_nothing_pending_is_no_match(database_url: str) -> None:
    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="100.00")
    decision = _decide(database_url)
    assert decision.outcome is MatchOutcome.NO_MATCH
    assert decision.pending_count == 0


def test_single_far_off_bill_needs_confirmation(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="500.00")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["1000.00"])

    decision = _decide(database_url)

    assert decision.outcome is MatchOutcome.DISAMBIGUATE
    assert decision.candidates[0].tier is ConfidenceTier.NO_MATCH
    with pytest.raises(ConfirmationRequiredError):
        decision.choose(bill)

    forced = decision.choose(bill, force=True)
    assert forced.mismatch and forced.forced
    with session_scope(database_url=database_url) as session:
        result = apply_link(session, forced)
    assert result.mismatch
    assert result.tier is ConfidenceTier.NO_MATCH


def test_choose_unknown_bill(database_url: str) -> None:
    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="500.00")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["1000.00"])
    with pytest.raises(BillNotFoundError):
        _decide(database_url).choose("nope")


def test_refunds_reduce_card_total(database_url: str) -> None:
    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="150.00")
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["200.00", "-50.00"])

    decision = _decide(database_url)

    assert decision.cc_total == D("150.00")
    assert decision.confidence is ConfidenceTier.EXACT


# ---- Forced links -------------------------------------------------------------


def test_forced_bill_bypasses_gate(database_url: str) -> None:
    bill = seed(
        database_url, add_bill, date=dt.date(2025, 9, 1), amount="10.00", description="Transfer"
    )
    seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["1000.00"])

    decision = _decide(database_url, forced_bill_id=bill)

    assert decision.outcome is MatchOutcome.AUTO_LINK
    assert decision.chosen_bill_id == bill
    assert decision.forced
    assert decision.mismatch


def test_forced_bill_must_exist_and_not_be_a_card_row(database_url: str) -> None:
    (row, *_) = seed(database_url, add_cc_rows, cycle=CYCLE, amounts=["10.00", "20.00"])
    with pytest.raises(BillNotFoundError):
        _decide(database_url, forced_bill_id="missing")
    with pytest.raises(BillNotFoundError, match="statement row"):
        _decide(database_url, forced_bill_id=row)
