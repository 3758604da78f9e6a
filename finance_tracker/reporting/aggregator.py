"""
Monthly Aggregation and Dashboard Figures

Everything here is a pure read over ledger state. Nothing is cached and
nothing is estimated: every figure comes straight from the transactions
and accounts passed in.

Sign convention: income is the sum of positive amounts, expenses the sum
of negative amounts (so expenses <= 0), and category totals are built
from negative amounts only, reported as magnitudes.
"""

import calendar
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from finance_tracker.models import (
    ZERO,
    Account,
    MonthlySummary,
    Transaction,
)


def filter_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> list[Transaction]:
    """
    Transactions dated in the given calendar month.

    month is 1-12. Transactions whose date can't be parsed fall outside
    every month.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")

    scoped = []
    for transaction in transactions:
        parsed = transaction.parsed_date
        if parsed is not None and parsed.year == year and parsed.month == month:
            scoped.append(transaction)
    return scoped


def summarize_month(
    transactions: Iterable[Transaction],
    year: int,
    month: int,
) -> MonthlySummary:
    """Income, expenses, net balance and spending by category for one month."""
    scoped = filter_month(transactions, year, month)

    income = sum((t.amount for t in scoped if t.is_income), ZERO)
    expenses = sum((t.amount for t in scoped if t.is_expense), ZERO)

    category_totals: dict[str, Decimal] = {}
    for transaction in scoped:
        if transaction.is_expense:
            key = transaction.category.value
            category_totals[key] = category_totals.get(key, ZERO) + abs(transaction.amount)

    return MonthlySummary(
        year=year,
        month=month,
        income=income,
        expenses=expenses,
        net_balance=income + expenses,
        category_totals=category_totals,
        transaction_count=len(scoped),
    )


def account_balances(accounts: Iterable[Account]) -> dict[str, Decimal]:
    """Account name to current balance, in account order."""
    return {account.name: account.balance for account in accounts}


def available_years(transactions: Iterable[Transaction]) -> list[int]:
    """Distinct years that have at least one dated transaction, ascending."""
    years = {t.parsed_date.year for t in transactions if t.parsed_date is not None}
    return sorted(years)


def month_options() -> list[tuple[int, str]]:
    return [(number, calendar.month_name[number]) for number in range(1, 13)]


def format_currency(amount: Decimal) -> str:
    """Format an amount as US dollars, e.g. $1,234.56 or -$4.50."""
    rounded = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.2f}"


class LedgerReporter:
    """
    Dashboard figures over a live ledger.

    Reads the store on every call, so results always reflect the latest
    mutation.
    """

    def __init__(self, store):
        self._store = store

    def summary(self, year: int, month: int) -> MonthlySummary:
        return summarize_month(self._store.transactions, year, month)

    def transactions_for_month(self, year: int, month: int) -> list[Transaction]:
        return filter_month(self._store.transactions, year, month)

    def account_balances(self) -> dict[str, Decimal]:
        return account_balances(self._store.accounts)

    def available_years(self, fallback_year: Optional[int] = None) -> list[int]:
        """
        Years to offer in the dashboard selector.

        When the ledger has no dated transactions, fallback_year (if given)
        is offered on its own.
        """
        years = available_years(self._store.transactions)
        if not years and fallback_year is not None:
            return [fallback_year]
        return years
