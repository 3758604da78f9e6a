"""Transaction categorization package."""

from finance_tracker.categorization.rules import (
    DEFAULT_RULES,
    Categorizer,
    CategoryRule,
    categorize,
    keyword_rule,
)

__all__ = [
    "DEFAULT_RULES",
    "Categorizer",
    "CategoryRule",
    "categorize",
    "keyword_rule",
]
