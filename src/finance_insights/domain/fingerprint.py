from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone

from finance_insights.models import ParsedTransaction

_WHITESPACE = re.compile(r"\s+")


def normalize_description(description: str | None) -> str:
    if not description:
        return ""
    return _WHITESPACE.sub(" ", description.strip().lower())


def format_fingerprint_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def format_fingerprint_amount(amount: float) -> str:
    amount = float(amount)
    if amount.is_integer():
        return str(int(amount))
    return repr(amount)


def fingerprint(transaction: ParsedTransaction) -> str:
    """``date|amount|description`` key identifying exact duplicates."""
    return "|".join((
        format_fingerprint_date(transaction.date),
        format_fingerprint_amount(transaction.amount),
        normalize_description(transaction.description),
    ))


def filter_new(
    parsed: Iterable[ParsedTransaction],
    existing: Iterable[ParsedTransaction],
) -> list[ParsedTransaction]:
    """Keep parsed rows whose fingerprint is not already in the ledger.

    Rows repeated inside the same file are all kept; only rows already
    committed are suppressed.
    """
    seen = {fingerprint(tx) for tx in existing}
    return [tx for tx in parsed if fingerprint(tx) not in seen]
