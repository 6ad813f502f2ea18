from datetime import date, datetime, timezone

import pytest

from finance_insights.domain.dates import resolve_date, to_utc_midnight


@pytest.mark.parametrize("hint", ["auto", "DMY", "MDY"])
def test_iso_dates_ignore_hint(hint: str) -> None:
    assert resolve_date("2025-03-04", hint) == date(2025, 3, 4)
    assert resolve_date("2025-03-04T10:15:00Z", hint) == date(2025, 3, 4)


def test_explicit_hints_decide_ambiguous_dates() -> None:
    assert resolve_date("05/12/2025", "DMY") == date(2025, 12, 5)
    assert resolve_date("05/12/2025", "MDY") == date(2025, 5, 12)
    assert resolve_date("05-12-25", "DMY") == date(2025, 12, 5)


def test_hinted_impossible_date_is_rejected() -> None:
    assert resolve_date("31/02/2025", "DMY") is None
    assert resolve_date("02/31/2025", "MDY") is None


def test_day_above_twelve_wins_over_locale() -> None:
    assert resolve_date("25/12/2025", "auto", day_first=False) == date(2025, 12, 25)
    assert resolve_date("25/12/2025", "auto", day_first=True) == date(2025, 12, 25)


def test_ambiguous_auto_date_follows_locale_order() -> None:
    assert resolve_date("05/12/2025", "auto", day_first=True) == date(2025, 12, 5)
    assert resolve_date("05/12/2025", "auto", day_first=False) == date(2025, 5, 12)


def test_textual_dates_use_generic_parser() -> None:
    assert resolve_date("Dec 5, 2025") == date(2025, 12, 5)
    assert resolve_date("5 March 2024") == date(2024, 3, 5)


@pytest.mark.parametrize("raw", [None, "", "   ", "not a date", "32/13/2025", "12", "1", "Dec 5"])
def test_unresolvable_values(raw: str | None) -> None:
    assert resolve_date(raw) is None


def test_to_utc_midnight() -> None:
    assert to_utc_midnight(date(2025, 1, 5)) == datetime(2025, 1, 5, tzinfo=timezone.utc)
