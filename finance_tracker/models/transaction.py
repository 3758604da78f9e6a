"""
Core Data Models for the Finance Tracker

These models define the schemas for everything the ledger holds or emits:
transactions, accounts, import batches, validation feedback and monthly
reports.

Amounts are Decimal throughout. Account balances are maintained by
adding and subtracting transaction amounts, so exact arithmetic keeps the
reconciliation invariant checkable with plain equality.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


ZERO = Decimal("0")

# Largest order of magnitude (adjusted exponent), either way, an amount may have
AMOUNT_MAX_EXPONENT = 15


def is_valid_amount(amount: Optional[Decimal]) -> bool:
    """
    True for a finite amount that is zero or whose magnitude lies within
    10**-15 .. 10**15.
    """
    if amount is None or not amount.is_finite():
        return False
    return amount.is_zero() or abs(amount.adjusted()) <= AMOUNT_MAX_EXPONENT


def _check_amount(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is not None and not is_valid_amount(value):
        raise ValueError(f"Amount out of range: {value}")
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Transaction categories.

    The order matches the order categories are offered for manual entry.
    """
    FOOD_AND_DINING = "Food & Dining"
    HOUSING = "Housing"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    SHOPPING = "Shopping"
    INCOME = "Income"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"
    SUBSCRIPTIONS = "Subscriptions"
    TRAVEL = "Travel"
    EDUCATION = "Education"
    HEALTHCARE = "Healthcare"


DEFAULT_CATEGORY = Category.OTHER


class AccountType(str, Enum):
    """Account types. Purely descriptive metadata."""
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"

    @property
    def label(self) -> str:
        """Display label for the account type."""
        return _ACCOUNT_TYPE_LABELS[self]


_ACCOUNT_TYPE_LABELS = {
    AccountType.CHECKING: "Checking Account",
    AccountType.SAVINGS: "Savings Account",
    AccountType.CREDIT: "Credit Card",
}


class ImportFormat(str, Enum):
    """Source formats accepted by the import decoder."""
    CSV = "csv"     # Delimited rows with a header line
    YNAB = "ynab"   # JSON array of {Date, Description, Amount} objects
    TEXT = "text"   # Delimited rows read from a plain text file


# =============================================================================
# DATE HANDLING
# =============================================================================

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y")


def parse_transaction_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a transaction date string into a calendar date.

    Accepts ISO dates (optionally followed by a time part), YYYY/MM/DD and
    US-style MM/DD/YYYY. Returns None for anything else.
    """
    text = (value or "").strip()
    if not text:
        return None

    head = text[:10]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(head, fmt).date()
        except ValueError:
            continue
    return None


# =============================================================================
# LEDGER MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction as entered by the user, before it has an identity.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(
        ...,
        description="Calendar date string, e.g. 2024-01-05"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Free-text description"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount: positive = inflow, negative = outflow"
    )
    category: Category = Field(
        default=DEFAULT_CATEGORY,
        description="Transaction category"
    )
    account: str = Field(
        ...,
        description="ID of the account this transaction belongs to"
    )

    @field_validator("amount")
    @classmethod
    def amount_in_range(cls, v: Decimal) -> Decimal:
        return _check_amount(v)

    def to_transaction(self) -> "Transaction":
        """Build a transaction with a fresh identity from this draft."""
        return Transaction(**self.model_dump(exclude={"id"}))


class Transaction(TransactionDraft):
    """
    A recorded transaction.

    The id is assigned once at creation and never changes. Every other
    field can be replaced through the ledger's update operation, which keeps
    account balances in step.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique transaction identifier"
    )

    @property
    def parsed_date(self) -> Optional[date]:
        """The transaction date as a calendar date, if it can be parsed."""
        return parse_transaction_date(self.date)

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0


class TransactionUpdate(BaseModel):
    """
    A partial update to an existing transaction.

    Only fields that are explicitly set (and not None) are applied.
    The id is not part of this model and cannot be changed.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    date: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[Decimal] = None
    category: Optional[Category] = None
    account: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def amount_in_range(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _check_amount(v)

    def changes(self) -> dict:
        """Fields to replace on the target transaction."""
        changed = self.model_dump(exclude_unset=True, exclude_none=True)
        # An empty account id means "keep the current account"
        if changed.get("account") == "":
            del changed["account"]
        return changed

    def apply_to(self, transaction: Transaction) -> Transaction:
        """Return a validated copy of the transaction with the changes applied."""
        data = transaction.model_dump()
        data.update(self.changes())
        return Transaction.model_validate(data)


class Account(BaseModel):
    """
    An account that transactions are attributed to.

    The stored balance equals the opening balance plus the sum of the
    amounts of all transactions currently attributed to the account.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique account identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    type: AccountType = Field(
        ...,
        description="Account type"
    )
    balance: Decimal = Field(
        default=ZERO,
        description="Current reconciled balance"
    )
    opening_balance: Optional[Decimal] = Field(
        default=None,
        description="Seed balance at account creation, when known"
    )


def default_accounts() -> list[Account]:
    """The seed accounts used on first launch or when saved accounts are unusable."""
    seeds = [
        ("checking1", "Checking Account 1", AccountType.CHECKING, Decimal("1234.56")),
        ("savings1", "Savings Account 1", AccountType.SAVINGS, Decimal("5678.90")),
        ("credit1", "Credit Card 1", AccountType.CREDIT, Decimal("-500.00")),
    ]
    return [
        Account(id=account_id, name=name, type=kind, balance=balance, opening_balance=balance)
        for account_id, name, kind, balance in seeds
    ]


DEFAULT_ACCOUNTS: tuple[Account, ...] = tuple(default_accounts())


class LedgerSnapshot(BaseModel):
    """The full durable state: both collections, written as one unit."""

    transactions: list[Transaction] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)


# =============================================================================
# IMPORT MODELS
# =============================================================================

class ImportedRecord(BaseModel):
    """
    A raw record decoded from an import source.

    No category or account yet. amount is None when the source value
    could not be read as a number.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = ""
    description: str = ""
    amount: Optional[Decimal] = None

    @property
    def has_valid_amount(self) -> bool:
        return is_valid_amount(self.amount)


class ImportResult(BaseModel):
    """Outcome of one import attempt."""

    target_account: Optional[str] = None
    accepted_count: int = Field(default=0, ge=0)
    rejected_count: int = Field(default=0, ge=0)
    transactions: list[Transaction] = Field(default_factory=list)
    error_message: Optional[str] = Field(
        default=None,
        description="Informational message when the import could not run"
    )

    @property
    def total_count(self) -> int:
        return self.accepted_count + self.rejected_count

    @property
    def succeeded(self) -> bool:
        return self.error_message is None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Result of validating a manual entry."""

    is_valid: bool = Field(
        ...,
        description="Can the entry be committed?"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# REPORTING MODELS
# =============================================================================

class MonthlySummary(BaseModel):
    """
    Aggregates for one calendar month.

    expenses is reported as a negative number (or zero); use
    expense_magnitude for display.
    """

    year: int
    month: int = Field(..., ge=1, le=12)
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    net_balance: Decimal = ZERO
    category_totals: dict[str, Decimal] = Field(default_factory=dict)
    transaction_count: int = Field(default=0, ge=0)

    @computed_field
    @property
    def expense_magnitude(self) -> Decimal:
        return abs(self.expenses)
