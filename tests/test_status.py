from __future__ import annotations

import datetime as dt
from decimal import Decimal

from card_reconciliation.engine import reconcile
from card_reconciliation.linking import apply_link
from card_reconciliation.models import CycleState
from card_reconciliation.status import cycle_overview, cycle_state, list_pending_cycles
from db.client import session_scope

from tests.helpers.db import OWNER, add_bill, add_cc_rows, seed

D = Decimal


def _pending(database_url: str) -> list[dict]:
    with session_scope(database_url=database_url) as session:
        return [p.to_payload() for p in list_pending_cycles(session, OWNER)]


def test_pending_cycle_without_bill(database_url: str) -> None:
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["10.00", "20.00", "30.00"])

    assert _pending(database_url) == [{"billing_cycle": "2025-12", "transaction_count": 3}]


def test_pending_cycles_newest_first_and_owner_scoped(database_url: str) -> None:
    seed(database_url, add_cc_rows, cycle="2025-10", amounts=["1.00"])
    seed(database_url, add_cc_rows, cycle="2025-11", amounts=["1.00", "2.00"])
    seed(database_url, add_cc_rows, cycle="2025-11", amounts=["9.00"], owner_id="someone-else")

    assert [p["billing_cycle"] for p in _pending(database_url)] == ["2025-11", "2025-10"]
    assert _pending(database_url)[0]["transaction_count"] == 2


def test_cycle_state_transitions(database_url: str) -> None:
    with session_scope(database_url=database_url) as session:
        assert cycle_state(session, OWNER, "2025-12") is CycleState.NO_DATA

    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="30.00")
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["10.00", "20.00"])
    with session_scope(database_url=database_url) as session:
        assert cycle_state(session, OWNER, "2025-12") is CycleState.PENDING
        apply_link(session, reconcile(session, OWNER, "2025-12"))

    with session_scope(database_url=database_url) as session:
        assert cycle_state(session, OWNER, "2025-12") is CycleState.LINKED
    assert _pending(database_url) == []


def test_overview_reports_linked_bill_and_delta(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="1010.00")
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["600.00", "400.00"])
    seed(database_url, add_cc_rows, cycle="2026-01", amounts=["50.00"])
    with session_scope(database_url=database_url) as session:
        apply_link(session, reconcile(session, OWNER, "2025-12"))

    with session_scope(database_url=database_url) as session:
        overview = {s.billing_cycle: s for s in cycle_overview(session, OWNER)}

    linked = overview["2025-12"]
    assert linked.state is CycleState.LINKED
    assert linked.transaction_count == 2
    assert linked.pending_count == 0
    assert linked.cc_total == D("1000.00")
    assert linked.bill_id == bill
    assert linked.bill_amount == D("1010.00")
    assert linked.amount_delta == D("10.00")
    assert linked.has_mismatch

    pending = overview["2026-01"]
    assert pending.state is CycleState.PENDING
    assert pending.bill_id is None
    assert not pending.has_mismatch
