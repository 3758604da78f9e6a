"""Monthly reporting package."""

from finance_tracker.reporting.aggregator import (
    LedgerReporter,
    account_balances,
    available_years,
    filter_month,
    format_currency,
    month_options,
    summarize_month,
)

__all__ = [
    "LedgerReporter",
    "account_balances",
    "available_years",
    "filter_month",
    "format_currency",
    "month_options",
    "summarize_month",
]
