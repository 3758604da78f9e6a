"""Services package."""

from finance_tracker.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CorruptStateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
    InMemoryAuditStorage,
    InMemoryStateStorage,
    JsonFileStateStorage,
    StateStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "CorruptStateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStateStorage",
    "InMemoryAuditStorage",
    "InMemoryStateStorage",
    "JsonFileStateStorage",
    "StateStorageInterface",
    "StorageError",
]
