"""Public interface for the ``card_reconciliation`` package.

Re-exports the trigger adapters, the core operations and the public models
as the stable import surface. There is no runtime logic here.
"""

from .api import (
    import_statement,
    on_bill_created,
    pending_cycles,
    reconcile_cycle,
    reconciliation_status,
    unlink_bill,
)
from .comparator import compare
from .config import DEFAULT_SETTINGS, ToleranceSettings, load_settings
from .engine import reconcile
from .errors import (
    BillNotFoundError,
    ConfirmationRequiredError,
    InvalidCycleError,
    LinkConflictError,
    NotExpandedError,
    ReconciliationError,
    StorageError,
)
from .finder import find_candidates
from .linking import apply_link, apply_unlink
from .models import (
    BillCandidate,
    Comparison,
    ConfidenceTier,
    CycleState,
    CycleSummary,
    ImportResult,
    LinkResult,
    MatchDecision,
    MatchOutcome,
    PendingCycle,
    ReconcileResult,
    ScoredCandidate,
    UnlinkResult,
)
from .status import cycle_overview, cycle_state, list_pending_cycles

__all__ = [
    # Trigger adapters
    "import_statement",
    "on_bill_created",
    "reconcile_cycle",
    "unlink_bill",
    "pending_cycles",
    "reconciliation_status",
    # Core
    "compare",
    "find_candidates",
    "reconcile",
    "apply_link",
    "apply_unlink",
    "list_pending_cycles",
    "cycle_state",
    "cycle_overview",
    # Configuration
    "ToleranceSettings",
    "DEFAULT_SETTINGS",
    "load_settings",
    # Models
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
    # Errors
    "ReconciliationError",
    "StorageError",
    "NotExpandedError",
    "BillNotFoundError",
    "LinkConflictError",
    "ConfirmationRequiredError",
    "InvalidCycleError",
]
