"""
Google Sheets Storage Implementation

Keeps the ledger in a spreadsheet so it can be viewed directly in Sheets.
Transactions and accounts each get their own worksheet; a save rewrites
both worksheets from the snapshot. The audit log is an append-only
worksheet.

API calls are retried with exponential backoff.
"""

from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.models import (
    AUDIT_COLUMNS,
    Account,
    AuditEvent,
    LedgerSnapshot,
    Transaction,
)
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptStateError,
    StateStorageInterface,
    StorageError,
)


# Column mappings for the Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "date",
    "description",
    "amount",
    "category",
    "account",
]

# Column mappings for the Accounts sheet
ACCOUNT_COLUMNS = [
    "id",
    "name",
    "type",
    "balance",
    "opening_balance",
]

logger = structlog.get_logger(__name__)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def find_worksheet(self, title: str) -> Optional[gspread.Worksheet]:
        """Get a worksheet by title, or None if it doesn't exist yet."""
        try:
            return self.get_spreadsheet().worksheet(title)
        except gspread.WorksheetNotFound:
            return None

    def get_or_create_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        sheet = self.find_worksheet(title)
        if sheet is None:
            sheet = self.get_spreadsheet().add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsStateStorage(StateStorageInterface):
    """
    Google Sheets implementation of ledger state storage.

    One row per transaction / account. A worksheet that doesn't exist
    means the collection was never saved.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: Transaction) -> list:
        return [
            transaction.id,
            transaction.date,
            transaction.description,
            str(transaction.amount),
            transaction.category.value,
            transaction.account,
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        values = dict(zip(TRANSACTION_COLUMNS, row))
        return Transaction.model_validate(values)

    def _account_to_row(self, account: Account) -> list:
        return [
            account.id,
            account.name,
            account.type.value,
            str(account.balance),
            str(account.opening_balance) if account.opening_balance is not None else "",
        ]

    def _row_to_account(self, row: list) -> Account:
        values = dict(zip(ACCOUNT_COLUMNS, row))
        if not values.get("opening_balance"):
            values["opening_balance"] = None
        return Account.model_validate(values)

    def _read_rows(self, title: str, columns: list[str]) -> Optional[list[list]]:
        try:
            sheet = self._client.find_worksheet(title)
            if sheet is None:
                return None
            all_rows = sheet.get_all_values()
        except gspread.exceptions.APIError as e:
            raise ConnectionError(f"Failed to read worksheet {title}: {e}") from e

        if not all_rows:
            return None
        if all_rows[0][:len(columns)] != columns:
            raise CorruptStateError(f"Unexpected header in worksheet {title}: {all_rows[0]}")

        # Skip empty rows
        return [row for row in all_rows[1:] if row and row[0]]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(CorruptStateError),
        reraise=True,
    )
    def load_transactions(self) -> Optional[list[Transaction]]:
        """Load transactions in sheet order."""
        title = self._client.settings.transactions_sheet_name
        rows = self._read_rows(title, TRANSACTION_COLUMNS)
        if rows is None:
            return None
        try:
            return [self._row_to_transaction(row) for row in rows]
        except ValidationError as e:
            raise CorruptStateError(f"Invalid transaction row in {title}: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(CorruptStateError),
        reraise=True,
    )
    def load_accounts(self) -> Optional[list[Account]]:
        """Load accounts in sheet order."""
        title = self._client.settings.accounts_sheet_name
        rows = self._read_rows(title, ACCOUNT_COLUMNS)
        if rows is None:
            return None
        try:
            return [self._row_to_account(row) for row in rows]
        except ValidationError as e:
            raise CorruptStateError(f"Invalid account row in {title}: {e}") from e

    def _rewrite(self, title: str, columns: list[str], rows: list[list]) -> None:
        sheet = self._client.get_or_create_worksheet(title, columns)
        sheet.clear()
        sheet.update(
            range_name="A1",
            values=[columns] + rows,
            value_input_option="RAW",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def save_snapshot(self, snapshot: LedgerSnapshot) -> None:
        """Rewrite both worksheets from the snapshot."""
        settings = self._client.settings
        try:
            self._rewrite(
                settings.transactions_sheet_name,
                TRANSACTION_COLUMNS,
                [self._transaction_to_row(t) for t in snapshot.transactions],
            )
            self._rewrite(
                settings.accounts_sheet_name,
                ACCOUNT_COLUMNS,
                [self._account_to_row(a) for a in snapshot.accounts],
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save ledger snapshot: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _audit_sheet(self) -> gspread.Worksheet:
        return self._client.get_or_create_worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        self._audit_sheet().append_row(row, value_input_option="RAW")

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_sheet_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def _all_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except (ValueError, ValidationError):
                logger.warning("audit_row_skipped", row=row)
        return events

    def get_events_by_correlation_id(self, correlation_id) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events."""
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
