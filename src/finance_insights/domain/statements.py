from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from datetime import date

from finance_insights.domain.dates import resolve_date, to_utc_midnight
from finance_insights.logger import get_logger
from finance_insights.models import DateFormatHint, FileType, ParsedTransaction

logger = get_logger(__name__)

DATE_KEYWORDS = ("date",)
DESCRIPTION_KEYWORDS = ("description", "narrative", "memo", "details", "payee")
AMOUNT_KEYWORDS = ("amount",)
CREDIT_KEYWORDS = ("credit",)
DEBIT_KEYWORDS = ("debit",)

# Split on commas followed by an even number of quotes, i.e. commas outside quotes.
_CSV_SPLIT = re.compile(r',(?=(?:(?:[^"]*"){2})*[^"]*$)')
_LINE_SPLIT = re.compile(r"\r?\n")
_AMOUNT_NOISE = re.compile(r"[\s,$€£¥₹]")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_OFX_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


class ParseError(ValueError):
    """The statement file cannot be turned into transactions."""


def decode_content(content: str | bytes) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    return content.lstrip("\ufeff")


def find_column_index(header: list[str], keywords: tuple[str, ...]) -> int:
    for keyword in keywords:
        for index, cell in enumerate(header):
            if keyword in cell:
                return index
    return -1


def split_csv_line(line: str) -> list[str]:
    return [value.strip().replace('"', "") for value in _CSV_SPLIT.split(line)]


def parse_amount(raw: str | None) -> float:
    """Parse a money string like ``$1,234.50`` leniently; junk becomes 0."""
    if not raw:
        return 0.0
    cleaned = _AMOUNT_NOISE.sub("", raw)
    match = _LEADING_FLOAT.match(cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def parse_csv(
    content: str,
    date_format: DateFormatHint = "auto",
    *,
    day_first: bool | None = None,
) -> list[ParsedTransaction]:
    lines = [line for line in _LINE_SPLIT.split(content) if line.strip()]
    if len(lines) < 2:
        raise ParseError("The CSV file needs a header row and at least one transaction row.")

    header = [cell.lower() for cell in split_csv_line(lines[0])]

    date_index = find_column_index(header, DATE_KEYWORDS)
    description_index = find_column_index(header, DESCRIPTION_KEYWORDS)
    amount_index = find_column_index(header, AMOUNT_KEYWORDS)
    credit_index = find_column_index(header, CREDIT_KEYWORDS)
    debit_index = find_column_index(header, DEBIT_KEYWORDS)

    if date_index == -1:
        raise ParseError(
            'Could not automatically detect the "Date" column. '
            "Please ensure your CSV has a column containing transaction dates."
        )
    if description_index == -1:
        raise ParseError(
            'Could not automatically detect the "Description" column. '
            "Please ensure your CSV has a column for the transaction description, narrative, or memo."
        )

    has_amount = amount_index != -1
    has_credit_debit = credit_index != -1 and debit_index != -1
    if not has_amount and not has_credit_debit:
        raise ParseError(
            'Could not detect amount columns. Please ensure your CSV has an "Amount" column, '
            'or both "Credit" and "Debit" columns.'
        )

    logger.debug(
        "[PARSE] Columns detected: date=%s description=%s amount=%s credit=%s debit=%s",
        date_index,
        description_index,
        amount_index,
        credit_index,
        debit_index,
    )

    transactions: list[ParsedTransaction] = []
    skipped = 0
    for line in lines[1:]:
        values = split_csv_line(line)
        if len(values) < len(header):
            skipped += 1
            continue

        if has_amount:
            amount = parse_amount(values[amount_index])
        else:
            amount = parse_amount(values[credit_index]) - abs(parse_amount(values[debit_index]))

        raw_date = values[date_index]
        resolved = resolve_date(raw_date, date_format, day_first=day_first)
        description = values[description_index]
        if resolved is None or not description:
            skipped += 1
            continue

        transactions.append(ParsedTransaction(
            date=to_utc_midnight(resolved),
            raw_date=raw_date,
            description=description,
            amount=amount,
        ))

    if skipped:
        logger.debug("[PARSE] Skipped %d malformed CSV row(s).", skipped)

    if not transactions:
        raise ParseError(
            "No valid transactions could be parsed from the file. "
            "Please check the file format and content."
        )
    return transactions


def _element_text(element: ET.Element, tag: str) -> str | None:
    child = element.find(f".//{tag}")
    if child is None:
        return None
    return (child.text or "").strip()


def parse_ofx(content: str) -> list[ParsedTransaction]:
    start = content.find("<OFX")
    if start == -1:
        raise ParseError("Not a valid OFX file (no <OFX> element found).")

    try:
        root = ET.fromstring(content[start:])
    except ET.ParseError as exc:
        raise ParseError(f"The OFX file is not well-formed XML: {exc}") from exc

    transactions: list[ParsedTransaction] = []
    for node in root.iter("STMTTRN"):
        raw_date = _element_text(node, "DTPOSTED")
        raw_amount = _element_text(node, "TRNAMT")
        memo = _element_text(node, "MEMO")
        if raw_date is None or raw_amount is None or memo is None:
            continue

        # DTPOSTED is YYYYMMDD[HHMMSS[.XXX][TZ]]; only the calendar day is kept.
        match = _OFX_DATE.match(raw_date)
        if not match:
            continue
        try:
            posted = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            continue

        transactions.append(ParsedTransaction(
            date=to_utc_midnight(posted),
            raw_date=raw_date,
            description=memo,
            amount=parse_amount(raw_amount),
        ))

    if not transactions:
        raise ParseError("No valid transactions could be parsed from the OFX file.")
    return transactions


def parse_statement(
    content: str | bytes,
    file_type: FileType,
    date_format: DateFormatHint = "auto",
    *,
    day_first: bool | None = None,
) -> list[ParsedTransaction]:
    text = decode_content(content)
    if file_type == "csv":
        transactions = parse_csv(text, date_format, day_first=day_first)
    elif file_type == "ofx":
        transactions = parse_ofx(text)
    else:
        raise ParseError("Unsupported file type. Please upload a CSV or OFX file.")
    logger.info("[PARSE] Parsed %d transaction(s) from %s file.", len(transactions), file_type.upper())
    return transactions


def detect_file_type(filename: str) -> FileType:
    lowered = filename.lower()
    if lowered.endswith(".csv"):
        return "csv"
    if lowered.endswith(".ofx"):
        return "ofx"
    raise ParseError("Unsupported file type. Please upload a CSV or OFX file.")

