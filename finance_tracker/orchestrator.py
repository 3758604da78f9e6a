"""
Main Orchestrator for the Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Manual entry (form → validate → add → persist)
2. Import (source → decode → validate records → bulk import → persist)
3. Edit (update / delete → reconcile → persist)
4. Dashboard (month scope → aggregate)

The orchestrator enforces the boundaries:
- Nothing reaches the ledger without passing validation
- A failed import leaves the ledger untouched
- Every step is audited
"""

import asyncio
from decimal import Decimal
from pathlib import Path
from typing import NamedTuple, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import AppSettings, Settings, get_settings
from finance_tracker.importing import UnsupportedFormatError, decode, resolve_format
from finance_tracker.ledger import LedgerError, LedgerStore, UnknownAccountError
from finance_tracker.models import (
    ImportFormat,
    ImportResult,
    MonthlySummary,
    Transaction,
    TransactionUpdate,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.reporting import LedgerReporter, month_options
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
    InMemoryAuditStorage,
    InMemoryStateStorage,
    JsonFileStateStorage,
    StateStorageInterface,
    StorageError,
)
from finance_tracker.validation import EntryForm, TransactionEntryValidator


logger = structlog.get_logger("finance_tracker.orchestrator")

SELECT_ACCOUNT_MESSAGE = "Please select an account to import into."
UNSUPPORTED_FORMAT_MESSAGE = "Unsupported file type."
READ_FAILED_MESSAGE = "Failed to read file."


class ImportTooLargeError(Exception):
    """The import file exceeds the configured size limit."""
    pass


class TransactionEntryFlow:
    """
    Orchestrates manual transaction entry.

    The validator is rebuilt from the store's accounts on each submit, so
    an account added or loaded later is accepted.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    def _validator(self) -> TransactionEntryValidator:
        return TransactionEntryValidator(
            known_account_ids=[account.id for account in self._store.accounts]
        )

    def submit(
        self,
        form: EntryForm,
    ) -> tuple[Optional[Transaction], ValidationResult, str]:
        """
        Validate and record a manual entry.

        Returns:
            (transaction or None, validation result, message for the user)
        """
        correlation_id = create_correlation_id()
        validator = self._validator()
        result = validator.validate(form)

        if not result.is_valid:
            self._audit_logger.log_entry_rejected(
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            first_error = next(i for i in result.issues if i.severity == "error")
            return None, result, first_error.message

        try:
            transaction = self._store.add(validator.to_draft(form), correlation_id)
        except UnknownAccountError as e:
            failed = ValidationResult(
                is_valid=False,
                issues=[ValidationIssue(
                    field="account",
                    issue_type="unknown_reference",
                    message=str(e),
                    severity="error",
                )],
            )
            return None, failed, str(e)

        return transaction, result, "Transaction added."


class ImportFlow:
    """
    Orchestrates file import into a single account.

    Reading the file is the only step that leaves the event loop. Decoding,
    validation and the bulk import run together afterwards, so a failed
    import never leaves a partial batch behind.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app

    def _fail(
        self,
        source: str,
        message: str,
        account_id: Optional[str],
        correlation_id: UUID,
    ) -> ImportResult:
        self._audit_logger.log_import_failed(
            source=source,
            error_message=message,
            correlation_id=correlation_id,
        )
        return ImportResult(target_account=account_id or None, error_message=message)

    def _check_format(self, fmt: Union[ImportFormat, str]) -> ImportFormat:
        import_format = resolve_format(fmt)
        if import_format.value not in self._settings.supported_formats_list:
            raise UnsupportedFormatError(f"Import format disabled: {import_format.value}")
        return import_format

    def import_text(
        self,
        text: str,
        fmt: Union[ImportFormat, str],
        account_id: Optional[str],
        correlation_id: Optional[UUID] = None,
        source: str = "text",
    ) -> ImportResult:
        """
        Import already-read source text into account_id.

        Every accepted record is attributed to account_id and categorized
        from its description.
        """
        correlation_id = correlation_id or create_correlation_id()

        if not account_id:
            return self._fail(source, SELECT_ACCOUNT_MESSAGE, account_id, correlation_id)

        try:
            import_format = self._check_format(fmt)
        except UnsupportedFormatError:
            return self._fail(source, UNSUPPORTED_FORMAT_MESSAGE, account_id, correlation_id)

        batch = decode(text, import_format, delimiter=self._settings.csv_delimiter)
        if batch.error_message:
            return self._fail(source, batch.error_message, account_id, correlation_id)

        if batch.rejected_count:
            self._audit_logger.log_records_rejected(
                rejected=batch.rejected_count,
                accepted=batch.accepted_count,
                correlation_id=correlation_id,
            )

        try:
            created = self._store.bulk_import(batch.accepted, account_id, correlation_id)
        except LedgerError as e:
            return self._fail(source, str(e), account_id, correlation_id)
        except Exception as e:
            self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"source": source, "account_id": account_id},
                correlation_id=correlation_id,
            )
            raise

        return ImportResult(
            target_account=account_id,
            accepted_count=len(created),
            rejected_count=batch.rejected_count,
            transactions=created,
        )

    def _read_source(self, path: Path) -> str:
        size = path.stat().st_size
        if size > self._settings.max_import_size_bytes:
            raise ImportTooLargeError(
                f"File is too large ({size} bytes). "
                f"Maximum size is {self._settings.max_import_size_mb}MB."
            )
        return path.read_text(encoding="utf-8-sig")

    async def import_file(
        self,
        path: Union[Path, str],
        fmt: Union[ImportFormat, str],
        account_id: Optional[str],
    ) -> ImportResult:
        """Read a file off the event loop, then import its contents."""
        correlation_id = create_correlation_id()
        path = Path(path)
        source = path.name

        if not account_id:
            return self._fail(source, SELECT_ACCOUNT_MESSAGE, account_id, correlation_id)

        try:
            self._check_format(fmt)
        except UnsupportedFormatError:
            return self._fail(source, UNSUPPORTED_FORMAT_MESSAGE, account_id, correlation_id)

        try:
            text = await asyncio.to_thread(self._read_source, path)
        except ImportTooLargeError as e:
            return self._fail(source, str(e), account_id, correlation_id)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("import_read_failed", path=str(path), error=str(e))
            return self._fail(source, READ_FAILED_MESSAGE, account_id, correlation_id)

        return self.import_text(
            text,
            fmt,
            account_id,
            correlation_id=correlation_id,
            source=source,
        )


class TransactionEditFlow:
    """Orchestrates edits and deletions of recorded transactions."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def update(
        self,
        transaction_id: str,
        changes: Union[TransactionUpdate, dict],
    ) -> tuple[Optional[Transaction], str]:
        """
        Apply changes to a transaction.

        Returns:
            (updated transaction or None, message for the user)
        """
        try:
            updated = self._store.update(transaction_id, changes, create_correlation_id())
        except ValidationError as e:
            return None, f"Invalid changes: {e.error_count()} field(s) rejected."
        except UnknownAccountError as e:
            return None, str(e)

        if updated is None:
            return None, "Transaction not found."
        return updated, "Transaction updated."

    def delete(self, transaction_id: str) -> tuple[Optional[Transaction], str]:
        removed = self._store.delete(transaction_id, create_correlation_id())
        if removed is None:
            return None, "Transaction not found."
        return removed, "Transaction deleted."


class DashboardFlow:
    """Read-only figures for the dashboard view."""

    def __init__(self, store: LedgerStore):
        self._reporter = LedgerReporter(store)

    def summary(self, year: int, month: int) -> MonthlySummary:
        return self._reporter.summary(year, month)

    def transactions_for_month(self, year: int, month: int) -> list[Transaction]:
        return self._reporter.transactions_for_month(year, month)

    def account_balances(self) -> dict[str, Decimal]:
        return self._reporter.account_balances()

    def available_years(self, fallback_year: Optional[int] = None) -> list[int]:
        return self._reporter.available_years(fallback_year)

    def month_options(self) -> list[tuple[int, str]]:
        return month_options()


class AppComponents(NamedTuple):
    store: LedgerStore
    entry_flow: TransactionEntryFlow
    import_flow: ImportFlow
    edit_flow: TransactionEditFlow
    dashboard_flow: DashboardFlow
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient]


def _local_storage(settings: Settings) -> StateStorageInterface:
    return JsonFileStateStorage(settings.storage.data_path)


def create_app_components(settings: Optional[Settings] = None) -> AppComponents:
    """
    Factory function to create all application components.

    The storage backend comes from STORAGE_BACKEND. If Google Sheets is
    selected but can't be configured or reached, the JSON file backend is
    used instead and only local audit logging is available.
    """
    settings = settings or get_settings()
    app_settings = settings.app
    backend = settings.storage.backend

    sheets_client = None
    if backend == "memory":
        state_storage = InMemoryStateStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    elif backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            state_storage = GoogleSheetsStateStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValidationError as e:
            logger.warning("google_sheets_not_configured", error=str(e))
            sheets_client = None
            state_storage = _local_storage(settings)
            audit_logger = AuditLogger()
    else:
        state_storage = _local_storage(settings)
        audit_logger = AuditLogger()

    try:
        store = LedgerStore.load(
            state_storage,
            audit_logger=audit_logger,
            strict_account_references=app_settings.strict_account_references,
        )
    except StorageError as e:
        if sheets_client is None:
            raise
        logger.warning("google_sheets_unavailable", error=str(e))
        sheets_client = None
        audit_logger = AuditLogger()
        store = LedgerStore.load(
            _local_storage(settings),
            audit_logger=audit_logger,
            strict_account_references=app_settings.strict_account_references,
        )

    return AppComponents(
        store=store,
        entry_flow=TransactionEntryFlow(store, audit_logger),
        import_flow=ImportFlow(store, audit_logger, app_settings),
        edit_flow=TransactionEditFlow(store),
        dashboard_flow=DashboardFlow(store),
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
