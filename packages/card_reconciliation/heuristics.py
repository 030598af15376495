"""Description heuristics for recognizing bill payments.

The finder accepts any ``Callable[[str], bool]``; this module ships the
default predicates built from per-locale vocabularies. Matching is done on an
accent-folded, case-folded, whitespace-collapsed copy of the description so
"Pagamento de Fatura", "PAGAMENTO DE FATURA" and "pagamento  de fatura" all
agree.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Iterable

BillPredicate = Callable[[str], bool]

# Patterns are written against folded text (no accents, lower case).
BILL_VOCABULARIES: dict[str, tuple[str, ...]] = {
    "pt_BR": (
        r"\bpagamento (de |da )?fatura\b",
        r"\bpagto (de |da )?fatura\b",
        r"\bfatura\b",
        r"\bpagamento (do |de )?cartao\b",
        r"\bcartao de credito\b",
    ),
    "en": (
        r"\bbill payment\b",
        r"\bpayment of (the )?bill\b",
        r"\bcard bill\b",
        r"\bcredit card( payment)?\b",
        r"\b(card|statement) payment\b",
    ),
}

# Lines on the card statement itself that mirror the bill (the issuer's
# acknowledgement of the payment). They are dropped at import.
STATEMENT_PAYMENT_PATTERNS: tuple[str, ...] = (
    r"^pagamento recebido\b",
    r"^pagamento efetuado\b",
    r"^payment received\b",
    r"^payment - thank you\b",
)


def fold(text: str | None) -> str:
    """Lower-case, strip accents and collapse whitespace."""

    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def make_bill_predicate(patterns: Iterable[str]) -> BillPredicate:
    compiled = [re.compile(p) for p in patterns]

    def _is_bill_like(description: str) -> bool:
        folded = fold(description)
        return any(rx.search(folded) for rx in compiled)

    return _is_bill_like


def bill_predicate_for(locale: str) -> BillPredicate:
    """Return the predicate for ``locale`` (``pt_BR``, ``en``, or ``all``)."""

    if locale == "all":
        return make_bill_predicate(p for vocab in BILL_VOCABULARIES.values() for p in vocab)
    try:
        return make_bill_predicate(BILL_VOCABULARIES[locale])
    except KeyError:
        raise ValueError(
            f"Unsupported bill locale: {locale!r}. Allowed: {sorted(BILL_VOCABULARIES)} or 'all'"
        ) from None


is_bill_like: BillPredicate = bill_predicate_for("pt_BR")

is_statement_payment: BillPredicate = make_bill_predicate(STATEMENT_PAYMENT_PATTERNS)


__all__ = [
    "BillPredicate",
    "BILL_VOCABULARIES",
    "fold",
    "make_bill_predicate",
    "bill_predicate_for",
    "is_bill_like",
    "is_statement_payment",
]
