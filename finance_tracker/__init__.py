"""
Finance Tracker - Source Package

A personal finance ledger: manual entry, bulk import from CSV, YNAB JSON
or delimited text, rule-based categorization, per-account balances and
a monthly dashboard.

DESIGN PRINCIPLES:
1. Account balances always agree with the transactions attributed to them
2. Bad input is reported, never silently fixed
3. Every mutation is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
