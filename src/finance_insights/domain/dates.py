"""Date resolution for bank statement exports.

Statement dates arrive in whatever shape the bank chose: ISO timestamps,
``05/12/2025`` (which may be the 5th of December or the 12th of May),
``Dec 5, 2025`` and so on. :func:`resolve_date` applies a fixed precedence:

1. ISO-like strings (``YYYY-`` / ``YYYY/``) are parsed as ISO and never
   reinterpreted, whatever the hint says.
2. Numeric ``D/M/Y`` shapes honour an explicit ``DMY`` / ``MDY`` hint.
3. Anything else goes to a generic parser (month-first).
4. Three numeric groups with a 4-digit year fall back to "a first group above
   12 must be the day", then to the locale's preferred field order.

Numeric triples with a 4-digit year skip step 3: the generic parser would
happily accept and even silently swap them, which would leave the locale
rule unreachable.
"""

from __future__ import annotations

import locale
import re
from datetime import date, datetime, timezone
from functools import lru_cache

from dateutil import parser as date_parser

from finance_insights.logger import get_logger
from finance_insights.models import DateFormatHint

logger = get_logger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100

_ISO_PREFIX = re.compile(r"^\d{4}[-/]")
_NUMERIC_SLASH_OR_DASH = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})$")
_NUMERIC_GROUP = re.compile(r"\d+")
_PARSER_DEFAULT = datetime(2000, 1, 1)
_PARSER_ALT_DEFAULT = datetime(2001, 1, 1)


def _plausible_year(year: int) -> bool:
    return MIN_YEAR < year < MAX_YEAR


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _generic_parse(raw: str, *, yearfirst: bool = False) -> date | None:
    """dateutil parse that rejects values carrying no year (``"12"``, ``"Dec 5"``).

    Missing fields come from ``default``; a year that changes with the
    default was never in the value.
    """
    try:
        parsed = date_parser.parse(raw, default=_PARSER_DEFAULT, yearfirst=yearfirst)
        other_year = date_parser.parse(raw, default=_PARSER_ALT_DEFAULT, yearfirst=yearfirst).year
    except (ValueError, OverflowError):
        return None
    if parsed.year != other_year or not _plausible_year(parsed.year):
        return None
    return parsed.date()


def _date_order_from_format(fmt: str) -> bool | None:
    day_pos = min((fmt.find(token) for token in ("%d", "%e") if token in fmt), default=-1)
    month_pos = min((fmt.find(token) for token in ("%m", "%b", "%B") if token in fmt), default=-1)
    if day_pos == -1 or month_pos == -1:
        return None
    return day_pos < month_pos


@lru_cache(maxsize=1)
def locale_prefers_day_first() -> bool:
    """Whether the process locale writes the day before the month.

    Reads ``LC_TIME`` from the environment when the interpreter is still on
    the ``C`` locale. Undeterminable locales count as month-first.
    """
    try:
        current = locale.setlocale(locale.LC_TIME)
        if current in {"C", "POSIX"}:
            try:
                locale.setlocale(locale.LC_TIME, "")
                fmt = locale.nl_langinfo(locale.D_FMT)
            finally:
                locale.setlocale(locale.LC_TIME, current)
        else:
            fmt = locale.nl_langinfo(locale.D_FMT)
    except (locale.Error, AttributeError, ValueError):
        return False

    order = _date_order_from_format(fmt)
    logger.debug("[DATES] Locale date format '%s' -> day_first=%s", fmt, order)
    return bool(order)


def _resolve_numeric_groups(raw: str, day_first: bool | None) -> date | None:
    groups = _NUMERIC_GROUP.findall(raw)
    if len(groups) != 3:
        return None
    p1, p2, p3 = (int(group) for group in groups)

    if p3 > 1000:
        if p1 > 12:
            return _safe_date(p3, p2, p1)
        if day_first is None:
            day_first = locale_prefers_day_first()
        if day_first:
            return _safe_date(p3, p2, p1)
        return _safe_date(p3, p1, p2)

    if p1 > 1000:
        return _safe_date(p1, p2, p3)
    return None


def _has_four_digit_year_triple(raw: str) -> bool:
    groups = _NUMERIC_GROUP.findall(raw)
    return len(groups) == 3 and (int(groups[0]) > 1000 or int(groups[2]) > 1000)


def resolve_date(
    raw: str | None,
    hint: DateFormatHint = "auto",
    *,
    day_first: bool | None = None,
) -> date | None:
    """Resolve a statement date string to a calendar date, or ``None``.

    ``day_first`` overrides locale inference for genuinely ambiguous values;
    it has no effect on ISO strings, hinted values or days above 12.
    """
    if not raw:
        return None
    value = raw.strip()
    if not value:
        return None

    if _ISO_PREFIX.match(value):
        resolved = _generic_parse(value, yearfirst=True)
        if resolved is not None:
            return resolved

    numeric = _NUMERIC_SLASH_OR_DASH.match(value)
    if numeric and hint in ("DMY", "MDY"):
        p1, p2, p3 = (int(part) for part in numeric.groups())
        if p3 < 100:
            p3 += 2000
        if hint == "DMY":
            return _safe_date(p3, p2, p1)
        return _safe_date(p3, p1, p2)

    if not _has_four_digit_year_triple(value):
        resolved = _generic_parse(value)
        if resolved is not None:
            return resolved

    return _resolve_numeric_groups(value, day_first)


def to_utc_midnight(value: date) -> datetime:
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
