"""Ledger and balance reconciliation package."""

from finance_tracker.ledger.reconciler import (
    ReconcileOutcome,
    apply_deltas,
    attributed_total,
    balance_deltas,
    batch_deltas,
    expected_balance,
)
from finance_tracker.ledger.store import (
    LedgerError,
    LedgerStore,
    UnknownAccountError,
)

__all__ = [
    "LedgerError",
    "LedgerStore",
    "ReconcileOutcome",
    "UnknownAccountError",
    "apply_deltas",
    "attributed_total",
    "balance_deltas",
    "batch_deltas",
    "expected_balance",
]
