"""CLI for the ``card_reconciliation`` package.

Command handlers (``cmd_*``) return a process exit code and print errors as
``Error: ...`` to stderr; the Typer commands below are thin wrappers. The root
callback loads ``.env`` from the working directory and configures logging
before any command runs. Business logic lives in
``card_reconciliation.api``.
"""

from __future__ import annotations

import csv
import datetime as dt
import json
import sys
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .errors import ReconciliationError
from .logging_setup import configure_logging
from .models import CycleState, ReconcileResult

console = Console()

_STATE_STYLE = {
    CycleState.LINKED: "green",
    CycleState.PENDING: "yellow",
    CycleState.NO_DATA: "dim",
}


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _print_reconcile(result: ReconcileResult) -> None:
    decision = result.decision
    if result.link is not None:
        link = result.link
        if link.already_linked:
            console.print(
                f"Cycle {link.billing_cycle} already linked to bill {link.bill_id} "
                f"({link.linked_count} transactions)."
            )
            return
        note = "" if link.amount_delta in (None, Decimal("0.00")) else f", delta {link.amount_delta}"
        console.print(
            f"[green]Linked[/green] {link.linked_count} transactions of {link.billing_cycle} "
            f"to bill {link.bill_id} ({link.tier.value if link.tier else '-'}{note})."
        )
        if link.mismatch:
            console.print("[yellow]Warning:[/yellow] bill amount does not match the card total.")
        return

    if decision.pending_count == 0:
        console.print(f"Cycle {decision.billing_cycle}: nothing pending.")
        return
    if not decision.candidates:
        console.print(
            f"Cycle {decision.billing_cycle}: {decision.pending_count} transactions "
            f"(total {decision.cc_total}) pending; no bill found."
        )
        return

    table = Table(title=f"Bill candidates for {decision.billing_cycle} (card total {decision.cc_total})")
    table.add_column("Bill id")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Tier")
    table.add_column("Description")
    for sc in decision.candidates:
        table.add_row(
            sc.bill_id,
            sc.candidate.date.isoformat(),
            str(sc.candidate.amount),
            str(sc.comparison.delta_abs),
            sc.tier.value,
            escape(sc.candidate.description),
        )
    console.print(table)
    console.print("Re-run with --bill-id to link (add --force below medium confidence).")


def cmd_import_statement(
    csv_path: str,
    *,
    owner_id: str,
    billing_cycle: str | None = None,
    database_url: str | None = None,
) -> int:
    """Import a Nubank credit-card CSV for ``owner_id`` and try to reconcile it."""

    from .api import import_statement
    from .ingest.adapters.nubank_cc_csv import EmptyStatementError
    from .ingest.utils import load_statement_csv

    try:
        rows = load_statement_csv(csv_path)
    except FileNotFoundError:
        return _fail(f"File not found: {csv_path}")
    except PermissionError:
        return _fail(f"Permission denied: {csv_path}")
    except EmptyStatementError as e:
        return _fail(str(e))
    except csv.Error as e:
        return _fail(f"Failed to parse CSV: {e}")

    try:
        result = import_statement(
            owner_id, rows, billing_cycle=billing_cycle, database_url=database_url
        )
    except ReconciliationError as e:
        return _fail(str(e))

    console.print(
        f"Imported {result.imported_count} transactions into {result.billing_cycle}"
        + (f" ({result.skipped_count} already present)." if result.skipped_count else ".")
    )
    if result.reconciliation is not None:
        _print_reconcile(result.reconciliation)
    return 0


def cmd_record_bill(
    *,
    owner_id: str,
    date: dt.date,
    description: str,
    amount: str,
    is_credit_card_payment: bool = False,
    database_url: str | None = None,
) -> int:
    """Record a bank-account bill payment and reconcile the cycles it may pay."""

    from db.client import session_scope

    from .api import on_bill_created
    from .comparator import to_money
    from .persistence import record_transaction

    try:
        value = to_money(amount)
    except ArithmeticError:
        return _fail(f"invalid amount {amount!r}")

    try:
        with session_scope(database_url=database_url) as session:
            bill = record_transaction(
                session,
                owner_id=owner_id,
                date=date,
                description=description,
                amount=value,
                is_credit_card_payment=is_credit_card_payment,
            )
            bill_id = bill.id
    except ReconciliationError as e:
        return _fail(str(e))

    # The bill is committed on its own; reconciliation runs as its trigger.
    try:
        results = on_bill_created(owner_id, bill_id, database_url=database_url)
    except ReconciliationError as e:
        return _fail(f"bill {bill_id} was recorded, but reconciliation failed: {e}")

    console.print(f"Recorded bill {bill_id}.")
    for r in results:
        _print_reconcile(r)
    return 0


def cmd_reconcile(
    cycle: str,
    *,
    owner_id: str,
    bill_id: str | None = None,
    force: bool = False,
    database_url: str | None = None,
) -> int:
    from .api import reconcile_cycle

    try:
        result = reconcile_cycle(
            owner_id, cycle, bill_id=bill_id, force=force, database_url=database_url
        )
    except ReconciliationError as e:
        return _fail(str(e))
    _print_reconcile(result)
    return 0


def cmd_unlink(bill_id: str, *, owner_id: str, database_url: str | None = None) -> int:
    from .api import unlink_bill

    try:
        payload = unlink_bill(owner_id, bill_id, database_url=database_url)
    except ReconciliationError as e:
        return _fail(str(e))
    console.print(
        f"Unlinked bill {bill_id}: {payload['restored_count']} transactions of "
        f"{payload['billing_cycle'] or '-'} back to pending."
    )
    return 0


def cmd_pending(*, owner_id: str, as_json: bool = False, database_url: str | None = None) -> int:
    from .api import pending_cycles

    try:
        payload = pending_cycles(owner_id, database_url=database_url)
    except ReconciliationError as e:
        return _fail(str(e))
    if as_json:
        print(json.dumps(payload))
        return 0
    if not payload:
        console.print("No pending cycles.")
    for p in payload:
        console.print(f"{p['billing_cycle']}: {p['transaction_count']} transactions pending")
    return 0


def cmd_status(*, owner_id: str, database_url: str | None = None) -> int:
    from .api import reconciliation_status

    try:
        summaries = reconciliation_status(owner_id, database_url=database_url)
    except ReconciliationError as e:
        return _fail(str(e))
    if not summaries:
        console.print("No credit-card statements imported.")
        return 0

    table = Table(title=f"Credit-card reconciliation for {owner_id}")
    table.add_column("Cycle")
    table.add_column("State")
    table.add_column("Rows", justify="right")
    table.add_column("Pending", justify="right")
    table.add_column("Card total", justify="right")
    table.add_column("Bill")
    table.add_column("Bill amount", justify="right")
    table.add_column("Delta", justify="right")
    for s in summaries:
        style = _STATE_STYLE[s.state]
        delta = "" if s.amount_delta is None else str(s.amount_delta)
        if s.has_mismatch:
            delta = f"[yellow]{delta}[/yellow]"
        table.add_row(
            s.billing_cycle,
            f"[{style}]{s.state.value}[/{style}]",
            str(s.transaction_count),
            str(s.pending_count),
            str(s.cc_total),
            s.bill_id or "",
            "" if s.bill_amount is None else str(s.bill_amount),
            delta,
        )
    console.print(table)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Reconcile credit-card statements with the bill payments that paid them. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)

Owner = Annotated[str, typer.Option("--owner", help="Owner (user) id.")]
DatabaseUrl = Annotated[
    str | None,
    typer.Option("--database-url", help="Override DATABASE_URL (falls back to env var)."),
]


@app.command("import-statement")
def import_statement_cmd(
    csv_path: Annotated[Path, typer.Argument(dir_okay=False, help="Nubank credit-card CSV.")],
    owner_id: Owner,
    billing_cycle: Annotated[
        str | None,
        typer.Option("--billing-cycle", help="YYYY-MM; defaults to the latest purchase month."),
    ] = None,
    database_url: DatabaseUrl = None,
) -> None:
    raise typer.Exit(
        cmd_import_statement(
            str(csv_path),
            owner_id=owner_id,
            billing_cycle=billing_cycle,
            database_url=database_url,
        )
    )


@app.command("record-bill")
def record_bill_cmd(
    owner_id: Owner,
    date: Annotated[dt.datetime, typer.Option("--date", formats=["%Y-%m-%d"])],
    amount: Annotated[str, typer.Option("--amount", help="Amount paid, e.g. 1124.77")],
    description: Annotated[str, typer.Option("--description")] = "Pagamento de fatura",
    is_credit_card_payment: Annotated[
        bool,
        typer.Option("--card-payment/--no-card-payment", help="Flag the bill explicitly."),
    ] = False,
    database_url: DatabaseUrl = None,
) -> None:
    """Record a bill payment and link it to a pending statement when it fits."""

    raise typer.Exit(
        cmd_record_bill(
            owner_id=owner_id,
            date=date.date(),
            description=description,
            amount=amount,
            is_credit_card_payment=is_credit_card_payment,
            database_url=database_url,
        )
    )


@app.command("reconcile")
def reconcile_cmd(
    cycle: Annotated[str, typer.Argument(help="Billing cycle, YYYY-MM.")],
    owner_id: Owner,
    bill_id: Annotated[str | None, typer.Option("--bill-id", help="Link to this bill.")] = None,
    force: Annotated[
        bool, typer.Option("--force", help="Confirm a link below medium confidence.")
    ] = False,
    database_url: DatabaseUrl = None,
) -> None:
    raise typer.Exit(
        cmd_reconcile(
            cycle, owner_id=owner_id, bill_id=bill_id, force=force, database_url=database_url
        )
    )


@app.command("unlink")
def unlink_cmd(
    bill_id: Annotated[str, typer.Argument(help="Expanded bill to collapse.")],
    owner_id: Owner,
    database_url: DatabaseUrl = None,
) -> None:
    raise typer.Exit(cmd_unlink(bill_id, owner_id=owner_id, database_url=database_url))


@app.command("pending")
def pending_cmd(
    owner_id: Owner,
    as_json: Annotated[bool, typer.Option("--json", help="Print the banner payload.")] = False,
    database_url: DatabaseUrl = None,
) -> None:
    raise typer.Exit(cmd_pending(owner_id=owner_id, as_json=as_json, database_url=database_url))


@app.command("status")
def status_cmd(
    owner_id: Owner,
    database_url: DatabaseUrl = None,
) -> None:
    raise typer.Exit(cmd_status(owner_id=owner_id, database_url=database_url))


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
