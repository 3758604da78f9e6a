"""
Manual Entry Validation

Checks a raw entry form before anything reaches the ledger. Two stages:

STAGE 1 - PRESENCE:
- Every field (date, description, amount, category, account) must be
  filled in. If any is empty, validation stops here.

STAGE 2 - VALUES:
- The amount must be a finite number of at most 10**15 in magnitude
- The category must be one of the fixed categories
- The account must exist, when the validator knows the accounts
- An unreadable date is allowed but flagged, since the transaction won't
  show up in any monthly summary

Validation never fixes input. A form that fails is reported back and
nothing is committed.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from finance_tracker.models import (
    Category,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    is_valid_amount,
    parse_transaction_date,
)


MISSING_FIELDS_MESSAGE = "Please fill in all fields."
INVALID_AMOUNT_MESSAGE = "Invalid amount. Please enter a number."

REQUIRED_FIELDS = ("date", "description", "amount", "category", "account")


class EntryValidationError(Exception):
    """Raised when converting a form that did not pass validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [issue.message for issue in result.issues if issue.severity == "error"]
        super().__init__("; ".join(messages) or "Entry is not valid")


class EntryForm(BaseModel):
    """Raw manual-entry fields, exactly as typed."""
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = ""
    description: str = ""
    amount: str = ""
    category: str = ""
    account: str = ""


def parse_entry_amount(text: str) -> Optional[Decimal]:
    """The whole text as a Decimal in the accepted amount range, or None."""
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, ValueError):
        return None
    return value if is_valid_amount(value) else None


class TransactionEntryValidator:
    """
    Validates manual transaction entries.

    If known_account_ids is None, account references are not checked here
    and the ledger's own policy applies.
    """

    def __init__(self, known_account_ids: Optional[Iterable[str]] = None):
        self._known_accounts = (
            None if known_account_ids is None else set(known_account_ids)
        )

    def _validate_presence(self, form: EntryForm) -> list[ValidationIssue]:
        missing = [name for name in REQUIRED_FIELDS if not getattr(form, name)]
        if not missing:
            return []
        return [
            ValidationIssue(
                field=", ".join(missing),
                issue_type="missing",
                message=MISSING_FIELDS_MESSAGE,
                severity="error",
                suggested_fix=f"Enter a value for: {', '.join(missing)}",
            )
        ]

    def _validate_values(self, form: EntryForm) -> tuple[list[ValidationIssue], list[str]]:
        issues = []
        warnings = []

        if parse_entry_amount(form.amount) is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=INVALID_AMOUNT_MESSAGE,
                severity="error",
                suggested_fix="Use a plain number such as 42.50 or -12",
            ))

        if form.category not in {c.value for c in Category}:
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"Unknown category: {form.category}",
                severity="error",
                suggested_fix="Pick one of: " + ", ".join(c.value for c in Category),
            ))

        if self._known_accounts is not None and form.account not in self._known_accounts:
            issues.append(ValidationIssue(
                field="account",
                issue_type="unknown_reference",
                message=f"Unknown account: {form.account}",
                severity="error",
                suggested_fix="Select one of the existing accounts",
            ))

        if parse_transaction_date(form.date) is None:
            message = f"Date '{form.date}' is not recognised; it won't appear in monthly summaries"
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=message,
                severity="warning",
                suggested_fix="Use YYYY-MM-DD",
            ))
            warnings.append(message)

        return issues, warnings

    def validate(self, form: EntryForm) -> ValidationResult:
        """Run both stages. Stage 2 is skipped if any field is empty."""
        issues = self._validate_presence(form)
        if issues:
            return ValidationResult(is_valid=False, issues=issues)

        issues, warnings = self._validate_values(form)
        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(is_valid=is_valid, issues=issues, warnings=warnings)

    def to_draft(self, form: EntryForm) -> TransactionDraft:
        """
        Convert a form into a draft ready for the ledger.

        Raises:
            EntryValidationError: If the form does not validate
        """
        result = self.validate(form)
        if not result.is_valid:
            raise EntryValidationError(result)

        return TransactionDraft(
            date=form.date,
            description=form.description,
            amount=parse_entry_amount(form.amount),
            category=Category(form.category),
            account=form.account,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the entry form shows next to the submit button.
        """
        if result.is_valid and not result.warnings:
            return "✅ Transaction looks good."

        lines = []

        if result.has_errors:
            lines.append("❌ The transaction could not be added:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
