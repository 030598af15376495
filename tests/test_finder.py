from __future__ import annotations

import datetime as dt

from card_reconciliation.finder import find_candidates
from db.client import session_scope
from db.models.finance import FaTransaction

from tests.helpers.db import OWNER, add_bill, add_cc_rows, seed


def _ids(database_url: str, cycle: str = "2025-12", **kwargs) -> list[str]:
    with session_scope(database_url=database_url) as session:
        return [c.id for c in find_candidates(session, OWNER, cycle, **kwargs)]


def test_window_edges_are_inclusive(database_url: str) -> None:
    inside_start = seed(database_url, add_bill, date=dt.date(2025, 11, 16), amount="10")
    inside_end = seed(database_url, add_bill, date=dt.date(2026, 1, 15), amount="10")
    seed(database_url, add_bill, date=dt.date(2025, 11, 15), amount="10")
    seed(database_url, add_bill, date=dt.date(2026, 1, 16), amount="10")

    assert _ids(database_url) == [inside_end, inside_start]


def test_only_visible_unexpanded_expense_bills_of_owner(database_url: str) -> None:
    good = seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="100")
    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="100", owner_id="someone-else")
    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="100", type="income")
    seed(database_url, add_bill, date=dt.date(2025, 12, 10), amount="100", description="Padaria")
    seed(database_url, add_cc_rows, cycle="2025-12", amounts=["100"])

    with session_scope(database_url=database_url) as session:
        hidden = add_bill(session, date=dt.date(2025, 12, 11), amount="100")
        deleted = add_bill(session, date=dt.date(2025, 12, 11), amount="100")
        expanded = add_bill(session, date=dt.date(2025, 12, 11), amount="100")
        session.get(FaTransaction, hidden).is_hidden = True
        session.get(FaTransaction, deleted).is_deleted = True
        session.get(FaTransaction, expanded).expanded_at = dt.datetime(2025, 12, 12, tzinfo=dt.UTC)

    assert _ids(database_url) == [good]


def test_explicit_flag_beats_description(database_url: str) -> None:
    flagged = seed(
        database_url,
        add_bill,
        date=dt.date(2025, 12, 5),
        amount="300",
        description="TED 123 Nu Pagamentos",
        is_credit_card_payment=True,
    )
    assert _ids(database_url) == [flagged]


def test_custom_predicate(database_url: str) -> None:
    bill = seed(database_url, add_bill, date=dt.date(2025, 12, 5), amount="300", description="NU PAGTO")
    assert _ids(database_url) == []
    assert _ids(database_url, is_bill_like=lambda d: "NU PAGTO" in d) == [bill]
