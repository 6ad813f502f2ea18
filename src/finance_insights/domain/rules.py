from __future__ import annotations

from collections.abc import Iterable

from finance_insights.models import Rule


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    # Stable: rules sharing an order value keep their list position.
    return sorted(rules, key=lambda rule: rule.order)


def rule_matches(rule: Rule, description: str) -> bool:
    description_lower = description.lower()
    value_lower = rule.condition_value.lower()
    if rule.condition_type == "contains":
        return value_lower in description_lower
    if rule.condition_type == "startsWith":
        return description_lower.startswith(value_lower)
    if rule.condition_type == "equals":
        return description_lower == value_lower
    return False


def match_rule(description: str, rules: Iterable[Rule]) -> str | None:
    """Category id of the first rule (ascending ``order``) matching the description."""
    for rule in sort_rules(rules):
        if rule_matches(rule, description):
            return rule.category_id
    return None
