from __future__ import annotations

from collections.abc import Iterable

from finance_insights.models import Category, is_uncategorized

INCOME_CATEGORY_NAME = "income"


def find_income_category_id(categories: Iterable[Category]) -> str | None:
    for category in categories:
        if category.name.strip().lower() == INCOME_CATEGORY_NAME:
            return category.id
    return None


def apply_income_fallback(
    category_id: str | None,
    amount: float,
    income_category_id: str | None,
) -> str | None:
    """Unresolved inflows are assumed to be income; outflows are never guessed."""
    if not is_uncategorized(category_id):
        return category_id
    if amount > 0 and income_category_id:
        return income_category_id
    return None
