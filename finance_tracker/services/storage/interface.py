"""
Abstract Storage Interface

The ledger never talks to a storage backend directly. It is handed a
StateStorageInterface and calls save_snapshot() after each successful
mutation, so the backend can be an in-memory dict, JSON files on disk or
a Google Sheets spreadsheet without the ledger knowing.

The durable state is two independently serialized collections:
transactions and accounts. Each is written whole, never incrementally.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finance_tracker.models import Account, AuditEvent, LedgerSnapshot, Transaction


class StateStorageInterface(ABC):
    """
    Abstract interface for ledger state persistence.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def load_transactions(self) -> Optional[list[Transaction]]:
        """
        Load the saved transactions.

        Returns:
            The transactions in insertion order, or None if nothing was saved

        Raises:
            CorruptStateError: If saved data exists but cannot be read
        """
        pass

    @abstractmethod
    def load_accounts(self) -> Optional[list[Account]]:
        """
        Load the saved accounts.

        Returns:
            The accounts, or None if nothing was saved

        Raises:
            CorruptStateError: If saved data exists but cannot be read
        """
        pass

    @abstractmethod
    def save_snapshot(self, snapshot: LedgerSnapshot) -> None:
        """
        Replace the saved state with this snapshot.

        Args:
            snapshot: Both collections, as they are after the latest mutation

        Raises:
            StorageError: If the snapshot could not be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptStateError(StorageError):
    """Saved state exists but cannot be parsed."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
