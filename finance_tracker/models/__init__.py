"""
Data Models Package

This package contains all Pydantic models used by the finance tracker.
All data flowing through the ledger must conform to these schemas.
"""

from finance_tracker.models.transaction import (
    AMOUNT_MAX_EXPONENT,
    DEFAULT_ACCOUNTS,
    DEFAULT_CATEGORY,
    ZERO,
    Account,
    AccountType,
    Category,
    ImportedRecord,
    ImportFormat,
    ImportResult,
    LedgerSnapshot,
    MonthlySummary,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
    ValidationIssue,
    ValidationResult,
    default_accounts,
    is_valid_amount,
    parse_transaction_date,
)
from finance_tracker.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AMOUNT_MAX_EXPONENT",
    "DEFAULT_ACCOUNTS",
    "DEFAULT_CATEGORY",
    "ZERO",
    "Account",
    "AccountType",
    "Category",
    "ImportedRecord",
    "ImportFormat",
    "ImportResult",
    "LedgerSnapshot",
    "MonthlySummary",
    "Transaction",
    "TransactionDraft",
    "TransactionUpdate",
    "ValidationIssue",
    "ValidationResult",
    "default_accounts",
    "is_valid_amount",
    "parse_transaction_date",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
