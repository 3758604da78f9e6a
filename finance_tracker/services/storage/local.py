"""
Local Storage Implementations

Both backends here store each collection as a JSON array under its own
key ("transactions" and "accounts"): in a dict for the in-memory backend,
in <key>.json files for the file backend.
"""

import os
import tempfile
from abc import abstractmethod
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from finance_tracker.models import Account, AuditEvent, LedgerSnapshot, Transaction
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    CorruptStateError,
    StateStorageInterface,
    StorageError,
)


TRANSACTIONS_KEY = "transactions"
ACCOUNTS_KEY = "accounts"

_TRANSACTIONS_ADAPTER = TypeAdapter(list[Transaction])
_ACCOUNTS_ADAPTER = TypeAdapter(list[Account])


class SerializedStateStorage(StateStorageInterface):
    """
    Base for backends that keep each collection as serialized JSON text.

    Subclasses only move text in and out; parsing, validation and
    corruption detection live here.
    """

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Return the stored text for key, or None if absent."""
        pass

    @abstractmethod
    def _write(self, items: dict[str, str]) -> None:
        """Store every key/text pair in items."""
        pass

    def _load(self, key: str, adapter: TypeAdapter) -> Optional[list]:
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            raise CorruptStateError(f"Saved {key} could not be read: {e}") from e

    def load_transactions(self) -> Optional[list[Transaction]]:
        return self._load(TRANSACTIONS_KEY, _TRANSACTIONS_ADAPTER)

    def load_accounts(self) -> Optional[list[Account]]:
        return self._load(ACCOUNTS_KEY, _ACCOUNTS_ADAPTER)

    def save_snapshot(self, snapshot: LedgerSnapshot) -> None:
        items = {
            TRANSACTIONS_KEY: _TRANSACTIONS_ADAPTER.dump_json(snapshot.transactions).decode("utf-8"),
            ACCOUNTS_KEY: _ACCOUNTS_ADAPTER.dump_json(snapshot.accounts).decode("utf-8"),
        }
        self._write(items)


class InMemoryStateStorage(SerializedStateStorage):
    """
    Keeps serialized state in a dict.

    Useful in tests and for throwaway sessions. Pre-seeded items can be
    passed in to simulate previously saved (or corrupted) state.
    """

    def __init__(self, items: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(items or {})
        self.save_count = 0

    def _read(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def _write(self, items: dict[str, str]) -> None:
        self._items.update(items)
        self.save_count += 1

    def raw(self, key: str) -> Optional[str]:
        """The serialized text stored under key."""
        return self._items.get(key)


class JsonFileStateStorage(SerializedStateStorage):
    """
    Keeps each collection in its own JSON file inside a data directory.

    Writes go to temporary files first; the real files are only replaced
    once every collection has been written successfully.
    """

    def __init__(self, data_dir: Union[Path, str]):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptStateError(f"Failed to read {path}: {e}") from e

    def _write(self, items: dict[str, str]) -> None:
        staged: list[tuple[str, Path]] = []
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            for key, text in items.items():
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{key}.", suffix=".tmp", dir=self._data_dir
                )
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                staged.append((tmp_name, self.path_for(key)))

            for tmp_name, target in staged:
                os.replace(tmp_name, target)
        except OSError as e:
            for tmp_name, _ in staged:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
            raise StorageError(f"Failed to write ledger state to {self._data_dir}: {e}") from e


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit storage backed by a list. Append-only."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
