"""Explicit link states, mapped from the nullable ORM columns.

The table stores link state as nullable columns (``credit_card_payment_id``,
``original_amount``, ``expanded_at``). Code outside this module reasons about
the tagged variants below instead of testing for ``None``.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal

from db.models.finance import FaTransaction

# ---- Card rows ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Unlinked:
    """A card row waiting for its bill (shown as pending)."""


@dataclass(frozen=True, slots=True)
class Linked:
    bill_id: str


type CCRowState = Unlinked | Linked


# ---- Bills -------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Plain:
    """A bill with no card detail attached."""


@dataclass(frozen=True, slots=True)
class Expanded:
    original_amount: Decimal
    expanded_at: dt.datetime


type BillState = Plain | Expanded


def cc_row_state(tx: FaTransaction) -> CCRowState:
    if tx.billing_cycle is None:
        raise ValueError(f"transaction {tx.id} is not a credit-card statement row")
    if tx.credit_card_payment_id is None:
        return Unlinked()
    return Linked(tx.credit_card_payment_id)


def bill_state(tx: FaTransaction) -> BillState:
    if tx.expanded_at is None:
        return Plain()
    # A missing snapshot means the amount was never changed.
    original = tx.original_amount if tx.original_amount is not None else tx.amount
    return Expanded(original_amount=original, expanded_at=tx.expanded_at)


def link_row(tx: FaTransaction, bill_id: str) -> None:
    tx.credit_card_payment_id = bill_id


def unlink_row(tx: FaTransaction) -> None:
    tx.credit_card_payment_id = None


def expand_bill(tx: FaTransaction, now: dt.datetime) -> Expanded:
    """Attach card detail to ``tx``; the first expansion snapshots the amount."""

    state = bill_state(tx)
    if isinstance(state, Expanded):
        return state
    tx.original_amount = tx.amount
    tx.expanded_at = now
    # The card rows now carry the spending; the bill itself shows zero.
    tx.amount = Decimal("0.00")
    return Expanded(original_amount=tx.original_amount, expanded_at=now)


def collapse_bill(tx: FaTransaction) -> Plain:
    state = bill_state(tx)
    if isinstance(state, Expanded):
        tx.amount = state.original_amount
    tx.original_amount = None
    tx.expanded_at = None
    return Plain()


__all__ = [
    "Unlinked",
    "Linked",
    "CCRowState",
    "Plain",
    "Expanded",
    "BillState",
    "cc_row_state",
    "bill_state",
    "link_row",
    "unlink_row",
    "expand_bill",
    "collapse_bill",
]
