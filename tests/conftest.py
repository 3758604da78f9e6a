"""Shared fixtures for finance tracker tests."""

from decimal import Decimal

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.ledger import LedgerStore
from finance_tracker.models import Category, TransactionDraft, default_accounts
from finance_tracker.services.storage import InMemoryAuditStorage, InMemoryStateStorage


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def state_storage():
    return InMemoryStateStorage()


@pytest.fixture
def store(state_storage, audit_logger):
    """A ledger seeded with the default accounts and no transactions."""
    return LedgerStore(
        accounts=default_accounts(),
        storage=state_storage,
        audit_logger=audit_logger,
    )


@pytest.fixture
def make_draft():
    def _make(
        amount="10.00",
        account="checking1",
        date="2024-01-05",
        description="Test",
        category=Category.OTHER,
    ):
        return TransactionDraft(
            date=date,
            description=description,
            amount=Decimal(amount),
            category=category,
            account=account,
        )

    return _make
