"""Ingest utilities shared by the CLI and the API adapters."""

from __future__ import annotations

from os import PathLike
from pathlib import Path

from .adapters.nubank_cc_csv import StatementRow, parse_statement


def load_statement_csv(csv_path: str | PathLike[str]) -> list[StatementRow]:
    """Read a Nubank credit-card CSV and return its statement rows.

    Raises ``csv.Error`` on a header mismatch and ``EmptyStatementError``
    when the file holds no transactions.
    """

    p = Path(csv_path)
    # utf-8-sig drops the BOM some exports prepend to the header
    with p.open(encoding="utf-8-sig", newline="") as f:
        return parse_statement(f)


__all__ = ["load_statement_csv"]
