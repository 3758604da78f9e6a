"""
Description-based categorization.

The rule table is plain data: an ordered sequence of (label, predicate)
pairs. The categorizer walks it top-down and the first predicate that
matches decides the category. Nothing matching means Category.OTHER.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from finance_tracker.models import DEFAULT_CATEGORY, Category


@dataclass(frozen=True)
class CategoryRule:
    """One row of the categorization table."""

    label: Category
    predicate: Callable[[str], bool]
    name: str = ""

    def matches(self, description: str) -> bool:
        return self.predicate(description)


def keyword_rule(label: Category, *keywords: str) -> CategoryRule:
    """Rule matching any of the keywords as a case-insensitive substring."""
    lowered = tuple(keyword.lower() for keyword in keywords)

    def predicate(description: str) -> bool:
        text = description.lower()
        return any(keyword in text for keyword in lowered)

    return CategoryRule(label=label, predicate=predicate, name="|".join(lowered))


DEFAULT_RULES: tuple[CategoryRule, ...] = (
    keyword_rule(Category.FOOD_AND_DINING, "grocery", "restaurant"),
    keyword_rule(Category.HOUSING, "rent", "mortgage"),
    keyword_rule(Category.TRANSPORTATION, "fuel", "gas"),
    keyword_rule(Category.UTILITIES, "electricity", "water"),
    keyword_rule(Category.SHOPPING, "amazon", "ebay"),
    keyword_rule(Category.INCOME, "salary", "paycheck"),
    keyword_rule(Category.ENTERTAINMENT, "netflix", "hulu"),
)


class Categorizer:
    """Maps a free-text description to a category using an ordered rule table."""

    def __init__(
        self,
        rules: Sequence[CategoryRule] = DEFAULT_RULES,
        default: Category = DEFAULT_CATEGORY,
    ):
        self._rules = tuple(rules)
        self._default = default

    @property
    def rules(self) -> tuple[CategoryRule, ...]:
        return self._rules

    def match(self, description: Optional[str]) -> Optional[CategoryRule]:
        """The first rule matching the description, if any."""
        text = description or ""
        for rule in self._rules:
            if rule.matches(text):
                return rule
        return None

    def categorize(self, description: Optional[str]) -> Category:
        rule = self.match(description)
        return rule.label if rule else self._default


_default_categorizer = Categorizer()


def categorize(description: Optional[str]) -> Category:
    """Categorize a description with the default rule table."""
    return _default_categorizer.categorize(description)
