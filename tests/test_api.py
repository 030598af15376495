from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from card_reconciliation.api import (
    import_statement,
    on_bill_created,
    pending_cycles,
    reconcile_cycle,
    reconciliation_status,
    unlink_bill,
)
from card_reconciliation.errors import ConfirmationRequiredError, InvalidCycleError
from card_reconciliation.ingest.adapters.nubank_cc_csv import StatementRow
from card_reconciliation.models import ConfidenceTier, CycleState, MatchOutcome

from tests.helpers.db import OWNER, add_bill, add_cc_rows, fetch, seed

D = Decimal


def _rows(*amounts: str, day: dt.date = dt.date(2025, 12, 3)) -> list[StatementRow]:
    out = []
    for i, raw in enumerate(amounts):
        value = D(raw)
        out.append(
            StatementRow(
                idx=i,
                date=day + dt.timedelta(days=i),
                description=f"Loja {i}",
                amount=abs(value),
                type="income" if value < 0 else "expense",
            )
        )
    return out


# ---- Import -------------------------------------------------------------------


def test_import_without_bill_stays_pending_then_links_on_bill(database_url: str) -> None:
    result = import_statement(OWNER, _rows("500.00", "400.00", "224.77"))

    assert result.billing_cycle == "2025-12"
    assert result.imported_count == 3
    assert result.reconciliation.decision.outcome is MatchOutcome.NO_MATCH
    assert not result.reconciliation.linked
    assert pending_cycles(OWNER) == [{"billing_cycle": "2025-12", "transaction_count": 3}]

    bill = seed(database_url, add_bill, date=dt.date(2026, 1, 10), amount="1124.77")
    (outcome,) = on_bill_created(OWNER, bill)

    assert outcome.linked
    assert outcome.link.to_payload() == {
        "linked_count": 3,
        "bill_id": bill,
        "billing_cycle": "2025-12",
        "tier": "exact",
        "amount_delta": D("0.00"),
    }
    assert pending_cycles(OWNER) == []
    assert fetch(database_url, bill).amount == D("0.00")


def test_import_with_existing_bill_auto_links(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 20), amount="903.00")

    result = import_statement(OWNER, _rows("500.00", "400.00"))

    assert result.reconciliation.linked
    assert result.reconciliation.link.bill_id == bill
    assert result.reconciliation.link.tier is ConfidenceTier.HIGH
    assert result.reconciliation.link.amount_delta == D("3.00")


def test_reimport_skips_rows_already_present(database_url: str) -> None:
    import_statement(OWNER, _rows("10.00", "10.00"))
    again = import_statement(OWNER, _rows("10.00", "10.00", "7.50"))

    assert again.imported_count == 1
    assert again.skipped_count == 2
    assert pending_cycles(OWNER)[0]["transaction_count"] == 3


def test_import_conflicting_auto_link_is_reported_unresolved(database_url: str) -> None:
    first = seed(database_url, add_bill, date=dt.date(2025, 12, 20), amount="300.00")
    import_statement(OWNER, _rows("100.00", "200.00"))
    # A late purchase whose amount matches another bill in the same window
    seed(database_url, add_bill, date=dt.date(2025, 12, 22), amount="50.00")

    result = import_statement(OWNER, _rows("50.00", day=dt.date(2025, 12, 15)))

    reconciliation = result.reconciliation
    assert result.imported_count == 1
    assert not reconciliation.linked
    assert reconciliation.decision.outcome is MatchOutcome.DISAMBIGUATE
    payload = reconciliation.to_payload()
    assert payload["outcome"] == "disambiguate"
    assert payload["link"] is None
    assert payload["decision"]["chosen_bill_id"] is None
    assert len(payload["decision"]["candidates"]) == 1
    assert pending_cycles(OWNER) == [{"billing_cycle": "2025-12", "transaction_count": 1}]
    assert fetch(database_url, first).original_amount == D("300.00")


def test_import_with_explicit_cycle(database_url: str) -> None:
    result = import_statement(OWNER, _rows("10.00"), billing_cycle="2026-01")
    assert result.billing_cycle == "2026-01"
    with pytest.raises(InvalidCycleError):
        import_statement(OWNER, _rows("10.00"), billing_cycle="jan")


# ---- Bill trigger ---------------------------------------------------------------


def test_non_bill_transaction_is_ignored(database_url: str) -> None:
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["30.00"])
    groceries = seed(
        database_url, add_bill, date=dt.date(2025, 12, 10), amount="30.00", description="Mercado"
    )
    assert on_bill_created(OWNER, groceries) == []


def test_bill_pays_oldest_fitting_cycle(database_url: str) -> None:
    seed(database_url, add_cc_rows, cycle="2025-11", amounts=["100.00"])
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["100.00"])
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 5), amount="100.00")

    results = on_bill_created(OWNER, bill)

    assert [r.decision.billing_cycle for r in results] == ["2025-11", "2025-12"]
    assert results[0].linked and results[0].link.bill_id == bill
    assert not results[1].linked
    assert pending_cycles(OWNER) == [{"billing_cycle": "2025-12", "transaction_count": 1}]


# ---- Manual reconcile and unlink ---------------------------------------------------


def test_manual_reconcile_resolves_disambiguation(database_url: str) -> None:
    small = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="500.00")
    exact = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="1000.00")
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["1000.00"])

    listed = reconcile_cycle(OWNER, "2025-12")
    assert listed.decision.outcome is MatchOutcome.DISAMBIGUATE
    assert not listed.linked
    payload = listed.to_payload()
    assert [c["bill_id"] for c in payload["decision"]["candidates"]] == [exact, small]

    with pytest.raises(ConfirmationRequiredError):
        reconcile_cycle(OWNER, "2025-12", bill_id=small)

    linked = reconcile_cycle(OWNER, "2025-12", bill_id=exact)
    assert linked.link.bill_id == exact

    again = reconcile_cycle(OWNER, "2025-12", bill_id=exact)
    assert again.link.already_linked


def test_forced_reconcile_records_mismatch(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="500.00")
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["1000.00"])

    result = reconcile_cycle(OWNER, "2025-12", bill_id=bill, force=True)

    assert result.link.mismatch
    (summary,) = reconciliation_status(OWNER)
    assert summary.state is CycleState.LINKED
    assert summary.amount_delta == D("500.00")


def test_unlink_bill_payload(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="30.00")
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["10.00", "20.00"])
    reconcile_cycle(OWNER, "2025-12")

    assert unlink_bill(OWNER, bill) == {"billing_cycle": "2025-12", "restored_count": 2}
    assert pending_cycles(OWNER) == [{"billing_cycle": "2025-12", "transaction_count": 2}]
