"""
Storage Services Package

Provides abstract interfaces and concrete implementations for persisting
the ledger snapshot and the audit log.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptStateError,
    StateStorageInterface,
    StorageError,
)
from finance_tracker.services.storage.local import (
    InMemoryAuditStorage,
    InMemoryStateStorage,
    JsonFileStateStorage,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "StateStorageInterface",
    # Exceptions
    "ConnectionError",
    "CorruptStateError",
    "StorageError",
    # Local implementations
    "InMemoryAuditStorage",
    "InMemoryStateStorage",
    "JsonFileStateStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStateStorage",
]
