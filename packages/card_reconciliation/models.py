"""Data models for ``card_reconciliation``.

Two families live here:

- frozen dataclasses for the values the core computes (comparisons,
  candidates, decisions, link/unlink results); these never touch the ORM;
- pydantic models for the payloads handed back to the transport layer
  (toasts, banners, selection dialogs). They are validated on construction and
  dumped to plain dicts by the ``to_payload`` helpers.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .errors import BillNotFoundError, ConfirmationRequiredError

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConfidenceTier(str, Enum):
    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    NO_MATCH = "no_match"

    @property
    def linkable(self) -> bool:
        """Whether this tier is good enough for an automatic link."""

        return self is not ConfidenceTier.NO_MATCH


class MatchOutcome(str, Enum):
    AUTO_LINK = "auto_link"
    DISAMBIGUATE = "disambiguate"
    NO_MATCH = "no_match"


class CycleState(str, Enum):
    NO_DATA = "no_data"
    PENDING = "pending"
    LINKED = "linked"


# ---------------------------------------------------------------------------
# Comparator and candidates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Comparison:
    """Result of comparing a card total against one bill amount."""

    delta_abs: Decimal
    delta_pct: Decimal
    tier: ConfidenceTier


@dataclass(frozen=True, slots=True)
class BillCandidate:
    """Projection of a transaction considered as a reconciliation target."""

    id: str
    date: dt.date
    amount: Decimal
    description: str
    category: str | None = None


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    candidate: BillCandidate
    comparison: Comparison

    @property
    def bill_id(self) -> str:
        return self.candidate.id

    @property
    def tier(self) -> ConfidenceTier:
        return self.comparison.tier


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MatchDecision:
    """What the engine decided for one ``(owner_id, billing_cycle)``.

    ``candidates`` is always sorted (date desc, delta asc, id) so selection
    lists are reproducible. ``chosen_bill_id`` is set for ``auto_link`` and
    for a ``disambiguate`` decision resolved with :meth:`choose`; only such
    decisions can be applied.
    """

    outcome: MatchOutcome
    owner_id: str
    billing_cycle: str
    cc_total: Decimal = Decimal("0.00")
    pending_count: int = 0
    candidates: tuple[ScoredCandidate, ...] = ()
    chosen_bill_id: str | None = None
    confidence: ConfidenceTier | None = None
    amount_delta: Decimal | None = None
    forced: bool = False
    mismatch: bool = False

    @property
    def chosen(self) -> ScoredCandidate | None:
        if self.chosen_bill_id is None:
            return None
        for sc in self.candidates:
            if sc.bill_id == self.chosen_bill_id:
                return sc
        return None

    @property
    def linkable(self) -> bool:
        return self.chosen_bill_id is not None

    def choose(self, bill_id: str, *, force: bool = False) -> MatchDecision:
        """Resolve this decision to ``bill_id``.

        Candidates below medium confidence are only accepted with
        ``force=True``; the resulting decision records the mismatch.
        """

        for sc in self.candidates:
            if sc.bill_id != bill_id:
                continue
            if not sc.tier.linkable and not force:
                raise ConfirmationRequiredError(bill_id, sc.comparison.delta_abs)
            return replace(
                self,
                chosen_bill_id=bill_id,
                confidence=sc.tier,
                amount_delta=sc.comparison.delta_abs,
                forced=self.forced or force,
                mismatch=not sc.tier.linkable,
            )
        raise BillNotFoundError(bill_id, f"not a candidate for cycle {self.billing_cycle}")

    def to_payload(self) -> dict:
        return DecisionPayload(
            outcome=self.outcome.value,
            billing_cycle=self.billing_cycle,
            cc_total=self.cc_total,
            pending_count=self.pending_count,
            chosen_bill_id=self.chosen_bill_id,
            tier=self.confidence.value if self.confidence else None,
            amount_delta=self.amount_delta,
            mismatch=self.mismatch,
            candidates=[
                CandidatePayload(
                    bill_id=sc.bill_id,
                    date=sc.candidate.date,
                    amount=sc.candidate.amount,
                    description=sc.candidate.description,
                    category=sc.candidate.category,
                    tier=sc.tier.value,
                    amount_delta=sc.comparison.delta_abs,
                )
                for sc in self.candidates
            ],
        ).model_dump()


# ---------------------------------------------------------------------------
# State manager results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LinkResult:
    owner_id: str
    billing_cycle: str
    bill_id: str
    linked_count: int
    tier: ConfidenceTier | None = None
    amount_delta: Decimal | None = None
    already_linked: bool = False
    mismatch: bool = False

    def to_payload(self) -> dict:
        return LinkPayload(
            linked_count=self.linked_count,
            bill_id=self.bill_id,
            billing_cycle=self.billing_cycle,
            tier=self.tier.value if self.tier else None,
            amount_delta=self.amount_delta,
        ).model_dump()


@dataclass(frozen=True, slots=True)
class UnlinkResult:
    owner_id: str
    bill_id: str
    billing_cycle: str | None
    restored_count: int
    restored_amount: Decimal

    def to_payload(self) -> dict:
        return UnlinkPayload(
            billing_cycle=self.billing_cycle,
            restored_count=self.restored_count,
        ).model_dump()


# ---------------------------------------------------------------------------
# Status views
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PendingCycle:
    billing_cycle: str
    transaction_count: int

    def to_payload(self) -> dict:
        return PendingCyclePayload(
            billing_cycle=self.billing_cycle,
            transaction_count=self.transaction_count,
        ).model_dump()


@dataclass(frozen=True, slots=True)
class CycleSummary:
    """One row of the reconciliation screen."""

    billing_cycle: str
    state: CycleState
    transaction_count: int
    pending_count: int
    cc_total: Decimal
    bill_id: str | None = None
    bill_amount: Decimal | None = None
    amount_delta: Decimal | None = None

    @property
    def has_mismatch(self) -> bool:
        return self.amount_delta is not None and self.amount_delta != 0


# ---------------------------------------------------------------------------
# Trigger adapter results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    decision: MatchDecision
    link: LinkResult | None = None

    @property
    def linked(self) -> bool:
        return self.link is not None

    def to_payload(self) -> dict:
        return {
            "outcome": self.decision.outcome.value,
            "billing_cycle": self.decision.billing_cycle,
            "decision": self.decision.to_payload(),
            "link": self.link.to_payload() if self.link else None,
        }


@dataclass(frozen=True, slots=True)
class ImportResult:
    owner_id: str
    billing_cycle: str
    imported_count: int
    skipped_count: int
    transaction_ids: tuple[str, ...] = field(default_factory=tuple)
    reconciliation: ReconcileResult | None = None

    def to_payload(self) -> dict:
        return {
            "billing_cycle": self.billing_cycle,
            "imported_count": self.imported_count,
            "skipped_count": self.skipped_count,
            "reconciliation": (
                self.reconciliation.to_payload() if self.reconciliation else None
            ),
        }


# ---------------------------------------------------------------------------
# Payload DTOs
# ---------------------------------------------------------------------------


class LinkPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    linked_count: int
    bill_id: str | None = None
    billing_cycle: str
    tier: str | None = None
    amount_delta: Decimal | None = None


class UnlinkPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    billing_cycle: str | None
    restored_count: int


class PendingCyclePayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    billing_cycle: str
    transaction_count: int


class CandidatePayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    bill_id: str
    date: dt.date
    amount: Decimal
    description: str
    category: str | None = None
    tier: str
    amount_delta: Decimal


class DecisionPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    outcome: str
    billing_cycle: str
    cc_total: Decimal
    pending_count: int
    chosen_bill_id: str | None = None
    tier: str | None = None
    amount_delta: Decimal | None = None
    mismatch: bool = False
    candidates: list[CandidatePayload]


__all__ = [
    "ConfidenceTier",
    "MatchOutcome",
    "CycleState",
    "Comparison",
    "BillCandidate",
    "ScoredCandidate",
    "MatchDecision",
    "LinkResult",
    "UnlinkResult",
    "PendingCycle",
    "CycleSummary",
    "ReconcileResult",
    "ImportResult",
    "LinkPayload",
    "UnlinkPayload",
    "PendingCyclePayload",
    "CandidatePayload",
    "DecisionPayload",
]
