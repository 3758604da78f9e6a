"""Integration tests for the application flows (in-memory storage, no network)."""

import asyncio
import json
from decimal import Decimal

import pytest

from finance_tracker.config import AppSettings, Settings
from finance_tracker.models import Category, ImportFormat
from finance_tracker.models.audit import AuditEventType
from finance_tracker.orchestrator import (
    READ_FAILED_MESSAGE,
    SELECT_ACCOUNT_MESSAGE,
    UNSUPPORTED_FORMAT_MESSAGE,
    DashboardFlow,
    ImportFlow,
    TransactionEditFlow,
    TransactionEntryFlow,
    create_app_components,
)
from finance_tracker.services.storage import JsonFileStateStorage
from finance_tracker.validation import (
    INVALID_AMOUNT_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    EntryForm,
)


CSV_SOURCE = (
    "Date,Description,Amount\n"
    "2024-01-05,Salary,1000\n"
    "2024-01-07,Rent,-200\n"
    "2024-01-09,Grocery store,-50\n"
    ",Missing date,-1\n"
)


@pytest.fixture
def import_flow(store, audit_logger):
    return ImportFlow(store, audit_logger, AppSettings())


def _balance(store, account_id):
    return store.get_account(account_id).balance


class TestTransactionEntryFlow:
    """Tests for manual entry."""

    def _form(self, **overrides):
        values = {
            "date": "2024-01-05",
            "description": "Lunch",
            "amount": "-12.50",
            "category": "Food & Dining",
            "account": "checking1",
        }
        values.update(overrides)
        return EntryForm(**values)

    def test_valid_entry_is_added(self, store, audit_logger):
        """Test that a valid form becomes a transaction."""
        flow = TransactionEntryFlow(store, audit_logger)
        txn, result, message = flow.submit(self._form())
        assert result.is_valid
        assert message == "Transaction added."
        assert store.transactions == (txn,)
        assert _balance(store, "checking1") == Decimal("1222.06")

    def test_missing_field_blocks_entry(self, store, audit_logger, audit_storage):
        """Test the missing-field message and that nothing is committed."""
        flow = TransactionEntryFlow(store, audit_logger)
        txn, result, message = flow.submit(self._form(description=""))
        assert txn is None
        assert message == MISSING_FIELDS_MESSAGE
        assert store.transactions == ()
        assert [e.event_type for e in audit_storage.events] == [AuditEventType.ENTRY_REJECTED]

    def test_invalid_amount_blocks_entry(self, store, audit_logger):
        """Test the invalid-amount message."""
        flow = TransactionEntryFlow(store, audit_logger)
        txn, _, message = flow.submit(self._form(amount="twelve"))
        assert txn is None
        assert message == INVALID_AMOUNT_MESSAGE

    def test_unknown_account_blocks_entry(self, store, audit_logger):
        """Test that entries must name an existing account."""
        flow = TransactionEntryFlow(store, audit_logger)
        txn, result, _ = flow.submit(self._form(account="ghost"))
        assert txn is None
        assert result.issues[0].field == "account"
        assert store.transactions == ()


class TestImportFlow:
    """Tests for imports."""

    def test_csv_import(self, store, import_flow, audit_storage):
        """Test a CSV import with one invalid row."""
        result = import_flow.import_text(CSV_SOURCE, ImportFormat.CSV, "checking1")
        assert result.succeeded
        assert result.accepted_count == 3
        assert result.rejected_count == 1
        assert [t.category for t in result.transactions] == [
            Category.INCOME,
            Category.HOUSING,
            Category.FOOD_AND_DINING,
        ]
        assert _balance(store, "checking1") == Decimal("1984.56")
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.IMPORT_RECORDS_REJECTED in types
        assert AuditEventType.TRANSACTIONS_IMPORTED in types

    def test_ynab_import(self, store, import_flow):
        """Test a YNAB JSON import."""
        text = json.dumps([
            {"Date": "2024-02-01", "Description": "Netflix", "Amount": -15.99},
            {"Date": "2024-02-02", "Description": "Paycheck", "Amount": 2500},
        ])
        result = import_flow.import_text(text, "ynab", "credit1")
        assert result.accepted_count == 2
        assert _balance(store, "credit1") == Decimal("1984.01")

    def test_malformed_json(self, store, import_flow):
        """Test that malformed JSON imports nothing and reports the error."""
        result = import_flow.import_text("[{broken", ImportFormat.YNAB, "checking1")
        assert not result.succeeded
        assert result.error_message.startswith("Error parsing file:")
        assert result.accepted_count == 0
        assert store.transactions == ()

    def test_account_must_be_selected(self, store, import_flow):
        """Test the missing-account message."""
        result = import_flow.import_text(CSV_SOURCE, ImportFormat.CSV, "")
        assert result.error_message == SELECT_ACCOUNT_MESSAGE
        assert store.transactions == ()

    def test_unsupported_format(self, store, import_flow):
        """Test the unsupported-format message."""
        result = import_flow.import_text(CSV_SOURCE, "xlsx", "checking1")
        assert result.error_message == UNSUPPORTED_FORMAT_MESSAGE

    def test_disabled_format(self, store, audit_logger):
        """Test that formats can be switched off in settings."""
        flow = ImportFlow(store, audit_logger, AppSettings(supported_import_formats="csv"))
        result = flow.import_text("[]", ImportFormat.YNAB, "checking1")
        assert result.error_message == UNSUPPORTED_FORMAT_MESSAGE

    def test_import_is_isolated_to_target(self, store, import_flow):
        """Test that an import changes only the target account."""
        import_flow.import_text(CSV_SOURCE, ImportFormat.TEXT, "savings1")
        assert _balance(store, "checking1") == Decimal("1234.56")
        assert _balance(store, "credit1") == Decimal("-500.00")
        assert store.find_discrepancies() == {}

    def test_import_file(self, store, import_flow, tmp_path):
        """Test reading and importing a file."""
        path = tmp_path / "bank.csv"
        path.write_text(CSV_SOURCE, encoding="utf-8")
        result = asyncio.run(import_flow.import_file(path, "csv", "checking1"))
        assert result.accepted_count == 3
        assert len(store.transactions) == 3

    def test_import_missing_file(self, store, import_flow, tmp_path):
        """Test the read-failure message."""
        result = asyncio.run(
            import_flow.import_file(tmp_path / "absent.csv", "csv", "checking1")
        )
        assert result.error_message == READ_FAILED_MESSAGE
        assert store.transactions == ()

    def test_import_undecodable_file(self, store, import_flow, tmp_path):
        """Test that a file that isn't UTF-8 text fails to read."""
        path = tmp_path / "binary.csv"
        path.write_bytes(b"\xff\xfe\xfa\x00")
        result = asyncio.run(import_flow.import_file(path, "csv", "checking1"))
        assert result.error_message == READ_FAILED_MESSAGE

    def test_import_oversized_file(self, store, audit_logger, tmp_path):
        """Test that files over the size limit are refused."""
        flow = ImportFlow(store, audit_logger, AppSettings(max_import_size_mb=1))
        path = tmp_path / "big.csv"
        path.write_text("Date,Description,Amount\n" + "x" * (1024 * 1024), encoding="utf-8")
        result = asyncio.run(flow.import_file(path, "csv", "checking1"))
        assert "too large" in result.error_message
        assert store.transactions == ()

    def test_import_file_with_byte_order_mark(self, store, import_flow, tmp_path):
        """Test that a UTF-8 file saved with a byte-order mark imports normally."""
        path = tmp_path / "export.csv"
        path.write_bytes("\ufeffDate,Description,Amount\n2024-01-05,Coffee,-4.50\n".encode("utf-8"))
        result = asyncio.run(import_flow.import_file(path, "csv", "checking1"))
        assert result.accepted_count == 1
        assert result.rejected_count == 0
        assert _balance(store, "checking1") == Decimal("1230.06")

    def test_huge_amount_is_rejected_not_raised(self, store, import_flow):
        """Test that an out-of-range amount is a rejected row and the rest imports."""
        text = "Date,Description,Amount\n2024-01-05,x,1e1000000\n2024-01-06,Coffee,-4.50\n"
        result = import_flow.import_text(text, ImportFormat.CSV, "checking1")
        assert result.accepted_count == 1
        assert result.rejected_count == 1
        assert store.find_discrepancies() == {}

    def test_unexpected_error_is_audited(self, store, import_flow, audit_storage, monkeypatch):
        """Test that an unexpected ledger failure is logged as a system error and re-raised."""
        def broken(records, account_id, correlation_id=None):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(store, "bulk_import", broken)
        with pytest.raises(RuntimeError):
            import_flow.import_text(CSV_SOURCE, ImportFormat.CSV, "checking1")
        [event] = [e for e in audit_storage.events if e.event_type == AuditEventType.SYSTEM_ERROR]
        assert event.error_message == "ledger unavailable"
        assert event.details == {"source": "text", "account_id": "checking1"}


class TestTransactionEditFlow:
    """Tests for edits and deletions."""

    def test_update_and_delete(self, store, make_draft):
        """Test a full edit cycle keeps balances reconciled."""
        flow = TransactionEditFlow(store)
        txn = store.add(make_draft("10"))

        updated, message = flow.update(txn.id, {"amount": "-5", "account": "savings1"})
        assert message == "Transaction updated."
        assert updated.account == "savings1"
        assert _balance(store, "checking1") == Decimal("1234.56")
        assert _balance(store, "savings1") == Decimal("5673.90")

        removed, message = flow.delete(txn.id)
        assert message == "Transaction deleted."
        assert removed.id == txn.id
        assert _balance(store, "savings1") == Decimal("5678.90")

    def test_missing_ids(self, store):
        """Test that unknown ids are reported, not raised."""
        flow = TransactionEditFlow(store)
        assert flow.update("nope", {"amount": "1"}) == (None, "Transaction not found.")
        assert flow.delete("nope") == (None, "Transaction not found.")

    def test_invalid_changes(self, store, make_draft):
        """Test that invalid changes are reported and nothing moves."""
        flow = TransactionEditFlow(store)
        txn = store.add(make_draft("10"))
        updated, message = flow.update(txn.id, {"amount": "ten"})
        assert updated is None
        assert message.startswith("Invalid changes")
        assert store.get_transaction(txn.id) == txn


class TestDashboardFlow:
    """Tests for the dashboard figures."""

    def test_summary_after_import(self, store, import_flow):
        """Test the monthly summary over imported data."""
        import_flow.import_text(CSV_SOURCE, ImportFormat.CSV, "checking1")
        dashboard = DashboardFlow(store)
        summary = dashboard.summary(2024, 1)
        assert summary.income == Decimal("1000")
        assert summary.expenses == Decimal("-250")
        assert summary.net_balance == Decimal("750")
        assert summary.category_totals == {
            "Housing": Decimal("200"),
            "Food & Dining": Decimal("50"),
        }
        assert dashboard.available_years() == [2024]
        assert dashboard.account_balances()["Checking Account 1"] == Decimal("1984.56")
        assert len(dashboard.transactions_for_month(2024, 1)) == 3
        assert dashboard.month_options()[0] == (1, "January")


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self, monkeypatch):
        """Test wiring with the in-memory backend."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        components = create_app_components(Settings())
        assert components.sheets_client is None
        assert [a.id for a in components.store.accounts] == ["checking1", "savings1", "credit1"]

        txn, _, _ = components.entry_flow.submit(EntryForm(
            date="2024-03-01",
            description="Paycheck",
            amount="100",
            category="Income",
            account="checking1",
        ))
        assert components.dashboard_flow.summary(2024, 3).income == Decimal("100")
        assert components.store.get_transaction(txn.id) == txn

    def test_json_backend_persists_between_runs(self, monkeypatch, tmp_path):
        """Test that the JSON backend reloads saved state."""
        monkeypatch.setenv("STORAGE_BACKEND", "json")
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path))
        first = create_app_components(Settings())
        first.import_flow.import_text(CSV_SOURCE, "csv", "credit1")

        second = create_app_components(Settings())
        assert second.store.snapshot() == first.store.snapshot()
        assert JsonFileStateStorage(tmp_path).load_transactions() is not None

    def test_unconfigured_google_sheets_falls_back(self, monkeypatch, tmp_path):
        """Test that missing Sheets settings fall back to local JSON storage."""
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path))
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        components = create_app_components(Settings())
        assert components.sheets_client is None
        components.entry_flow.submit(EntryForm(
            date="2024-03-01",
            description="Coffee",
            amount="-3",
            category="Other",
            account="checking1",
        ))
        assert (tmp_path / "transactions.json").exists()
