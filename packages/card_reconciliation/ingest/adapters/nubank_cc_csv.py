"""Adapter for a Nubank credit-card statement export.

CSV header (keys expected, extra columns ignored):
``date, title, amount``

- ``date``: purchase date, ``YYYY-MM-DD`` (``DD/MM/YYYY`` also accepted)
- ``title``: merchant line; installment purchases end in ``- Parcela N/M``
- ``amount``: positive for purchases, negative for refunds and credits

The statement's own payment acknowledgement ("Pagamento recebido") mirrors
the bill paid from the bank account and is dropped.
"""

from __future__ import annotations

import csv
import datetime as dt
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ...comparator import to_money
from ...cycles import cycle_of
from ...heuristics import is_statement_payment

REQUIRED_HEADERS = ("date", "title", "amount")

_INSTALLMENT_RE = re.compile(r"\s*-\s*Parcela\s+(\d+)\s*/\s*(\d+)\s*$", re.IGNORECASE)


class EmptyStatementError(ValueError):
    """The statement has a header but no transactions."""


@dataclass(frozen=True, slots=True)
class StatementRow:
    idx: int
    date: dt.date
    description: str
    amount: Decimal
    type: str
    installment_number: int | None = None
    installment_total: int | None = None


def _clean_text(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def _parse_date(value: str | None, line: int) -> dt.date:
    s = (value or "").strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return dt.datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise csv.Error(f"line {line}: invalid date {value!r}")


def _parse_amount(value: str | None, line: int) -> Decimal:
    s = (value or "").strip().replace("R$", "").replace(" ", "")
    if "," in s:
        # Brazilian notation: 1.234,56
        s = s.replace(".", "").replace(",", ".")
    try:
        amount = Decimal(s)
        if not amount.is_finite():
            raise InvalidOperation(s)
        return to_money(amount)
    except InvalidOperation:
        raise csv.Error(f"line {line}: invalid amount {value!r}") from None


def check_headers(fieldnames: Iterable[str] | None) -> None:
    headers = {h.strip().lower() for h in (fieldnames or [])}
    if not headers:
        raise csv.Error("CSV appears to have no header row")
    missing = [h for h in REQUIRED_HEADERS if h not in headers]
    if missing:
        raise csv.Error(
            "CSV header mismatch for Nubank credit-card adapter. Missing columns: "
            + ", ".join(missing)
        )


def to_rows(rows: Iterable[Mapping[str, str]]) -> Iterator[StatementRow]:
    """Convert ``DictReader`` rows into :class:`StatementRow` values.

    Blank lines and payment acknowledgements are skipped; ``idx`` keeps
    counting over kept rows only.
    """

    idx = 0
    for line, raw in enumerate(rows, start=2):
        row = {(k or "").strip().lower(): v for k, v in raw.items()}
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        title = _clean_text(row.get("title"))
        if is_statement_payment(title):
            continue

        amount = _parse_amount(row.get("amount"), line)
        number = total = None
        m = _INSTALLMENT_RE.search(title)
        if m:
            number, total = int(m.group(1)), int(m.group(2))
            if not 1 <= number <= total:
                number = total = None

        yield StatementRow(
            idx=idx,
            date=_parse_date(row.get("date"), line),
            description=title,
            amount=abs(amount),
            type="income" if amount < 0 else "expense",
            installment_number=number,
            installment_total=total,
        )
        idx += 1


def parse_statement(f: Iterable[str]) -> list[StatementRow]:
    """Parse an open statement file (or any iterable of lines)."""

    reader = csv.DictReader(f)
    check_headers(reader.fieldnames)
    rows = list(to_rows(reader))
    if not rows:
        raise EmptyStatementError("no transactions found in statement")
    return rows


def infer_billing_cycle(rows: Iterable[StatementRow]) -> str:
    """Cycle (``YYYY-MM``) of the latest purchase on the statement."""

    latest = max((r.date for r in rows), default=None)
    if latest is None:
        raise EmptyStatementError("no transactions found in statement")
    return cycle_of(latest)


__all__ = [
    "REQUIRED_HEADERS",
    "EmptyStatementError",
    "StatementRow",
    "check_headers",
    "to_rows",
    "parse_statement",
    "infer_billing_cycle",
]
