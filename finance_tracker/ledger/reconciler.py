"""
Account balance reconciliation.

Balances are never recomputed from the full ledger during a mutation.
Each mutation is described by a (before, after) pair of transaction
snapshots, turned into per-account deltas, and applied in one step:

    add      (None, new)   -> +new.amount on new.account
    delete   (old, None)   -> -old.amount on old.account
    update   (old, new)    -> -old.amount on old.account, +new.amount on
                              new.account (one net delta if same account)

Deltas aimed at accounts that don't exist are not applied; they are
returned to the caller as dropped.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from finance_tracker.models import ZERO, Account, Transaction


@dataclass(frozen=True)
class ReconcileOutcome:
    """Accounts after applying deltas, plus any deltas that had no target."""

    accounts: dict[str, Account]
    applied: dict[str, Decimal] = field(default_factory=dict)
    dropped: dict[str, Decimal] = field(default_factory=dict)


def _without_zero(deltas: dict[str, Decimal]) -> dict[str, Decimal]:
    return {account: delta for account, delta in deltas.items() if delta != ZERO}


def balance_deltas(
    before: Optional[Transaction],
    after: Optional[Transaction],
) -> dict[str, Decimal]:
    """Per-account balance change implied by replacing before with after."""
    deltas: dict[str, Decimal] = {}
    if before is not None:
        deltas[before.account] = deltas.get(before.account, ZERO) - before.amount
    if after is not None:
        deltas[after.account] = deltas.get(after.account, ZERO) + after.amount
    return _without_zero(deltas)


def batch_deltas(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Aggregate per-account credit for a batch of new transactions."""
    deltas: dict[str, Decimal] = {}
    for transaction in transactions:
        deltas[transaction.account] = deltas.get(transaction.account, ZERO) + transaction.amount
    return _without_zero(deltas)


def apply_deltas(
    accounts: Mapping[str, Account],
    deltas: Mapping[str, Decimal],
) -> ReconcileOutcome:
    """
    Apply deltas to a copy of the account mapping.

    The input mapping is not modified. Account order is preserved.
    """
    updated = dict(accounts)
    applied: dict[str, Decimal] = {}
    dropped: dict[str, Decimal] = {}

    for account_id, delta in deltas.items():
        account = updated.get(account_id)
        if account is None:
            dropped[account_id] = delta
            continue
        updated[account_id] = account.model_copy(update={"balance": account.balance + delta})
        applied[account_id] = delta

    return ReconcileOutcome(accounts=updated, applied=applied, dropped=dropped)


def attributed_total(account_id: str, transactions: Iterable[Transaction]) -> Decimal:
    """Sum of amounts of the transactions attributed to an account."""
    return sum(
        (t.amount for t in transactions if t.account == account_id),
        ZERO,
    )


def expected_balance(account: Account, transactions: Iterable[Transaction]) -> Optional[Decimal]:
    """
    Opening balance plus attributed amounts.

    None when the account's opening balance is not known.
    """
    if account.opening_balance is None:
        return None
    return account.opening_balance + attributed_total(account.id, transactions)
