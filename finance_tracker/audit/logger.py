"""
Audit Logger

Every ledger mutation, import outcome and persistence failure is logged.
The logger:
- Always writes a structured local log line
- Optionally appends to an audit storage backend
- Never raises because of a storage failure
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_transaction_added(
        self,
        transaction_id: str,
        account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a manually added transaction."""
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            account_id=account_id,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    def log_transaction_updated(
        self,
        transaction_id: str,
        changed_fields: list[str],
        deltas: dict[str, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an edit and the balance changes it caused."""
        self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            deltas={account: str(delta) for account, delta in deltas.items()},
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(
        self,
        transaction_id: str,
        account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a deletion."""
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            account_id=account_id,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    def log_transactions_imported(
        self,
        account_id: str,
        count: int,
        total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a bulk import into one account."""
        self.log(AuditEventBuilder.transactions_imported(
            account_id=account_id,
            count=count,
            total=str(total),
            correlation_id=correlation_id,
        ))

    def log_balance_delta_dropped(
        self,
        account_id: str,
        delta: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a balance change that referenced an unknown account."""
        self.log(AuditEventBuilder.balance_delta_dropped(
            account_id=account_id,
            delta=str(delta),
            correlation_id=correlation_id,
        ))

    def log_records_rejected(
        self,
        rejected: int,
        accepted: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log import records dropped by validation."""
        self.log(AuditEventBuilder.import_records_rejected(
            rejected=rejected,
            accepted=accepted,
            correlation_id=correlation_id,
        ))

    def log_import_failed(
        self,
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an import that could not run."""
        self.log(AuditEventBuilder.import_failed(
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_entry_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a manual entry blocked by validation."""
        self.log(AuditEventBuilder.entry_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_state_load_fallback(self, collection: str, reason: str) -> None:
        """Log that saved state was unusable and defaults were used."""
        self.log(AuditEventBuilder.state_load_fallback(
            collection=collection,
            reason=reason,
        ))

    def log_state_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed snapshot write."""
        self.log(AuditEventBuilder.state_save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a file import).
    Pass it through all subsequent operations.
    """
    return uuid4()
