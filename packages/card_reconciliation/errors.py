"""Error taxonomy for the reconciliation core.

Every error derives from :class:`ReconciliationError` and carries the
HTTP-equivalent ``status_code`` the transport layer should surface plus a
``retryable`` flag. Ambiguity among several bills is deliberately absent from
this module: it is an expected outcome (``disambiguate``), not a fault.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError


class ReconciliationError(Exception):
    """Base class for all reconciliation failures."""

    status_code: int = 500
    retryable: bool = False


class StorageError(ReconciliationError):
    """The underlying read or write failed."""

    status_code = 503
    retryable = True


class NotExpandedError(ReconciliationError):
    """Unlink was requested for a bill that has no active expansion."""

    status_code = 409

    def __init__(self, bill_id: str) -> None:
        super().__init__(f"bill {bill_id} is not expanded; nothing to unlink")
        self.bill_id = bill_id


class BillNotFoundError(ReconciliationError):
    """The referenced bill does not exist for this owner or is not linkable."""

    status_code = 404

    def __init__(self, bill_id: str, reason: str = "not found") -> None:
        super().__init__(f"bill {bill_id}: {reason}")
        self.bill_id = bill_id
        self.reason = reason


class LinkConflictError(ReconciliationError):
    """The cycle or bill changed under us; re-run ``reconcile`` and retry."""

    status_code = 409
    retryable = True


class ConfirmationRequiredError(ReconciliationError):
    """Linking below medium confidence needs an explicit ``force``."""

    status_code = 422

    def __init__(self, bill_id: str, amount_delta: object) -> None:
        super().__init__(
            f"bill {bill_id} differs from the card total by {amount_delta}; "
            "confirm with force=True to link anyway"
        )
        self.bill_id = bill_id
        self.amount_delta = amount_delta


class InvalidCycleError(ReconciliationError, ValueError):
    """A billing cycle string is not ``YYYY-MM``."""

    status_code = 400


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures inside the block as :class:`StorageError`."""

    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageError(f"{action} failed: {exc}") from exc


__all__ = [
    "ReconciliationError",
    "StorageError",
    "NotExpandedError",
    "BillNotFoundError",
    "LinkConflictError",
    "ConfirmationRequiredError",
    "InvalidCycleError",
    "storage_errors",
]
