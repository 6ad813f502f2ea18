from datetime import datetime, timezone

from finance_insights.domain.fingerprint import filter_new, fingerprint, format_fingerprint_amount
from finance_insights.domain.income import apply_income_fallback, find_income_category_id
from finance_insights.domain.rules import match_rule, rule_matches, sort_rules
from finance_insights.models import Category, ParsedTransaction, Rule


def _tx(description: str, amount: float = -10.0, day: int = 5) -> ParsedTransaction:
    return ParsedTransaction(
        date=datetime(2025, 1, day, tzinfo=timezone.utc),
        description=description,
        amount=amount,
    )


def test_lower_order_rule_wins() -> None:
    rules = [
        Rule(id="r-long", condition_type="contains", condition_value="STARBUCKS", category_id="cat-dining", order=2),
        Rule(id="r-short", condition_type="contains", condition_value="STAR", category_id="cat-entertainment", order=1),
    ]

    assert match_rule("STARBUCKS SYDNEY", rules) == "cat-entertainment"
    assert [r.id for r in sort_rules(rules)] == ["r-short", "r-long"]


def test_rule_conditions_are_case_insensitive() -> None:
    starts = Rule(id="a", condition_type="startsWith", condition_value="uber", category_id="cat-transport")
    equals = Rule(id="b", condition_type="equals", condition_value="Netflix", category_id="cat-subscriptions")

    assert rule_matches(starts, "UBER *TRIP")
    assert not rule_matches(starts, "PAID UBER")
    assert rule_matches(equals, "NETFLIX")
    assert not rule_matches(equals, "NETFLIX.COM")
    assert match_rule("NOTHING HERE", [starts, equals]) is None


def test_income_fallback() -> None:
    assert apply_income_fallback(None, 50.0, "cat-income") == "cat-income"
    assert apply_income_fallback("cat-uncategorized", 50.0, "cat-income") == "cat-income"
    assert apply_income_fallback(None, -50.0, "cat-income") is None
    assert apply_income_fallback(None, 0.0, "cat-income") is None
    assert apply_income_fallback("cat-groceries", 50.0, "cat-income") == "cat-groceries"
    assert apply_income_fallback(None, 50.0, None) is None


def test_find_income_category_by_name() -> None:
    categories = [Category(id="c1", name="Food"), Category(id="c2", name=" INCOME ")]

    assert find_income_category_id(categories) == "c2"
    assert find_income_category_id(categories[:1]) is None


def test_fingerprint_normalizes_description() -> None:
    assert fingerprint(_tx("Coffee   Bar ")) == fingerprint(_tx("coffee bar"))
    assert fingerprint(_tx("coffee bar")) == "2025-01-05T00:00:00.000Z|-10|coffee bar"
    assert format_fingerprint_amount(-4.5) == "-4.5"


def test_filter_new_only_suppresses_existing_rows() -> None:
    existing = [_tx("RENT", -500.0)]
    parsed = [_tx("rent", -500.0), _tx("RENT", -500.0, day=6), _tx("TEA"), _tx("TEA")]

    fresh = filter_new(parsed, existing)

    assert [(t.description, t.date.day) for t in fresh] == [("RENT", 6), ("TEA", 5), ("TEA", 5)]
