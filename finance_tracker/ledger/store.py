"""
Ledger Store

The single owner of the two pieces of durable state: the ordered list of
transactions and the account collection. All changes go through add,
bulk_import, update and delete; each one adjusts account balances by the
minimal delta and then hands a full snapshot to the injected storage.

Missing transaction ids make update/delete a no-op. Balance changes aimed
at unknown accounts are dropped and audited, unless the store was created
with strict_account_references=True, in which case the mutation is
rejected with UnknownAccountError before anything changes.
"""

from decimal import Decimal
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

from finance_tracker.audit import AuditLogger
from finance_tracker.categorization import Categorizer
from finance_tracker.ledger.reconciler import (
    ReconcileOutcome,
    apply_deltas,
    balance_deltas,
    batch_deltas,
    expected_balance,
)
from finance_tracker.models import (
    ZERO,
    Account,
    ImportedRecord,
    LedgerSnapshot,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
    default_accounts,
)
from finance_tracker.services.storage import (
    CorruptStateError,
    StateStorageInterface,
    StorageError,
)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class UnknownAccountError(LedgerError):
    """A mutation referenced an account that doesn't exist."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Unknown account: {account_id}")


class LedgerStore:
    """
    In-memory ledger with incremental balance reconciliation.

    After every mutation, for each account with a known opening balance:
        balance == opening_balance + sum(amounts attributed to it)
    """

    def __init__(
        self,
        accounts: Optional[Iterable[Account]] = None,
        transactions: Iterable[Transaction] = (),
        storage: Optional[StateStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        categorizer: Optional[Categorizer] = None,
        strict_account_references: bool = False,
    ):
        seed = default_accounts() if accounts is None else accounts
        self._accounts: dict[str, Account] = {account.id: account for account in seed}
        self._transactions: list[Transaction] = list(transactions)
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._categorizer = categorizer or Categorizer()
        self._strict = strict_account_references

    @classmethod
    def load(
        cls,
        storage: StateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        categorizer: Optional[Categorizer] = None,
        strict_account_references: bool = False,
    ) -> "LedgerStore":
        """
        Build a store from previously saved state.

        Missing or corrupt transactions start empty; missing or corrupt
        accounts fall back to the default seed accounts.

        Raises:
            StorageError: If the backend itself is unreachable
        """
        audit_logger = audit_logger or AuditLogger()
        transactions = cls._load_collection(
            storage.load_transactions, "transactions", list, audit_logger
        )
        accounts = cls._load_collection(
            storage.load_accounts, "accounts", default_accounts, audit_logger
        )
        return cls(
            accounts=accounts,
            transactions=transactions,
            storage=storage,
            audit_logger=audit_logger,
            categorizer=categorizer,
            strict_account_references=strict_account_references,
        )

    @staticmethod
    def _load_collection(
        loader: Callable[[], Optional[list]],
        name: str,
        fallback: Callable[[], list],
        audit_logger: AuditLogger,
    ) -> list:
        try:
            loaded = loader()
        except CorruptStateError as e:
            audit_logger.log_state_load_fallback(collection=name, reason=str(e))
            return fallback()
        return fallback() if loaded is None else loaded

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """All transactions in insertion order."""
        return tuple(self._transactions)

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._accounts.values())

    @property
    def strict_account_references(self) -> bool:
        return self._strict

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        index = self._index_of(transaction_id)
        return None if index is None else self._transactions[index]

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            transactions=list(self._transactions),
            accounts=list(self._accounts.values()),
        )

    def find_discrepancies(self) -> dict[str, tuple[Decimal, Decimal]]:
        """
        Accounts whose stored balance disagrees with their transactions.

        Returns {account_id: (stored_balance, expected_balance)}. Accounts
        without a known opening balance are not checked.
        """
        discrepancies = {}
        for account in self._accounts.values():
            expected = expected_balance(account, self._transactions)
            if expected is not None and expected != account.balance:
                discrepancies[account.id] = (account.balance, expected)
        return discrepancies

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Record a new transaction and credit its amount to its account."""
        transaction = draft.to_transaction()
        self._require_accounts(transaction.account)

        self._reconcile(balance_deltas(None, transaction), correlation_id)
        self._transactions.append(transaction)

        self._audit_logger.log_transaction_added(
            transaction_id=transaction.id,
            account_id=transaction.account,
            amount=transaction.amount,
            correlation_id=correlation_id,
        )
        self._persist(correlation_id)
        return transaction

    def bulk_import(
        self,
        records: Iterable[ImportedRecord],
        target_account_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Import validated records into one account.

        Each record is categorized from its description and attributed to
        target_account_id regardless of anything else. The account is
        credited once with the sum of the batch.

        Raises:
            LedgerError: If a record has no date or no usable amount
        """
        records = list(records)
        self._require_accounts(target_account_id)
        if not records:
            return []

        invalid = [r for r in records if not r.date or not r.has_valid_amount]
        if invalid:
            raise LedgerError(
                f"{len(invalid)} records have no date or amount; validate before importing"
            )

        created = [
            Transaction(
                date=record.date,
                description=record.description,
                amount=record.amount,
                category=self._categorizer.categorize(record.description),
                account=target_account_id,
            )
            for record in records
        ]

        self._reconcile(batch_deltas(created), correlation_id)
        self._transactions.extend(created)

        self._audit_logger.log_transactions_imported(
            account_id=target_account_id,
            count=len(created),
            total=sum((t.amount for t in created), ZERO),
            correlation_id=correlation_id,
        )
        self._persist(correlation_id)
        return created

    def delete(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Transaction]:
        """
        Remove a transaction and reverse its amount from its account.

        Returns the removed transaction, or None if the id is unknown.
        """
        index = self._index_of(transaction_id)
        if index is None:
            return None

        removed = self._transactions[index]
        self._reconcile(balance_deltas(removed, None), correlation_id)
        del self._transactions[index]

        self._audit_logger.log_transaction_deleted(
            transaction_id=removed.id,
            account_id=removed.account,
            amount=removed.amount,
            correlation_id=correlation_id,
        )
        self._persist(correlation_id)
        return removed

    def update(
        self,
        transaction_id: str,
        changes: Union[TransactionUpdate, dict],
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Transaction]:
        """
        Replace the given fields on a transaction.

        Balances move by the difference between the old and new snapshot:
        the old amount leaves the old account and the new amount lands on
        the new account. Returns the updated transaction, or None if the id
        is unknown.
        """
        if not isinstance(changes, TransactionUpdate):
            changes = TransactionUpdate.model_validate(changes)

        index = self._index_of(transaction_id)
        if index is None:
            return None

        before = self._transactions[index]
        after = changes.apply_to(before)
        if after.account != before.account:
            self._require_accounts(after.account)

        outcome = self._reconcile(balance_deltas(before, after), correlation_id)
        self._transactions[index] = after

        self._audit_logger.log_transaction_updated(
            transaction_id=after.id,
            changed_fields=sorted(changes.changes()),
            deltas=outcome.applied,
            correlation_id=correlation_id,
        )
        self._persist(correlation_id)
        return after

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of(self, transaction_id: str) -> Optional[int]:
        for index, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return index
        return None

    def _require_accounts(self, *account_ids: str) -> None:
        if not self._strict:
            return
        for account_id in account_ids:
            if account_id not in self._accounts:
                raise UnknownAccountError(account_id)

    def _reconcile(
        self,
        deltas: dict[str, Decimal],
        correlation_id: Optional[UUID],
    ) -> ReconcileOutcome:
        # Balances move first; callers touch the transaction list only after
        # this returns
        outcome = apply_deltas(self._accounts, deltas)
        self._accounts = outcome.accounts
        for account_id, delta in outcome.dropped.items():
            self._audit_logger.log_balance_delta_dropped(
                account_id=account_id,
                delta=delta,
                correlation_id=correlation_id,
            )
        return outcome

    def _persist(self, correlation_id: Optional[UUID]) -> None:
        if self._storage is None:
            return
        try:
            self._storage.save_snapshot(self.snapshot())
        except StorageError as e:
            # The in-memory state stays authoritative; the next successful
            # save writes it out in full.
            self._audit_logger.log_state_save_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
