from datetime import datetime, timezone

import pytest

from finance_insights.domain.statements import (
    ParseError,
    detect_file_type,
    parse_amount,
    parse_csv,
    parse_ofx,
    parse_statement,
    split_csv_line,
)

OFX_BODY = """OFXHEADER:100
DATA:OFXSGML
VERSION:102

<OFX>
<BANKMSGSRSV1><STMTTRNRS><STMTRS><BANKTRANLIST>
<STMTTRN>
<TRNTYPE>DEBIT</TRNTYPE>
<DTPOSTED>20250105120000[0:GMT]</DTPOSTED>
<TRNAMT>-12.50</TRNAMT>
<MEMO>WOOLWORTHS 1234</MEMO>
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT</TRNTYPE>
<DTPOSTED>20250107</DTPOSTED>
<TRNAMT>2000.00</TRNAMT>
<MEMO>ACME PAYROLL</MEMO>
</STMTTRN>
<STMTTRN>
<TRNTYPE>DEBIT</TRNTYPE>
<DTPOSTED>20251340</DTPOSTED>
<TRNAMT>-1.00</TRNAMT>
<MEMO>BAD DATE</MEMO>
</STMTTRN>
</BANKTRANLIST></STMTRS></STMTTRNRS></BANKMSGSRSV1>
</OFX>
"""


def test_split_csv_line_keeps_quoted_commas() -> None:
    assert split_csv_line('05/12/2025,"COFFEE, BAR", -4.50 ') == ["05/12/2025", "COFFEE, BAR", "-4.50"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$1,234.50", 1234.5),
        ("-4.50", -4.5),
        ("€ 12", 12.0),
        ("12abc", 12.0),
        ("abc", 0.0),
        ("", 0.0),
    ],
)
def test_parse_amount(raw: str, expected: float) -> None:
    assert parse_amount(raw) == expected


def test_parse_csv_with_amount_column() -> None:
    content = 'Date,Description,Amount\n05/12/2025,"COFFEE, BAR",-4.50\n06/12/2025,SALARY,"1,000.00"\n'

    rows = parse_csv(content, "DMY")

    assert [r.description for r in rows] == ["COFFEE, BAR", "SALARY"]
    assert [r.amount for r in rows] == [-4.5, 1000.0]
    assert rows[0].date == datetime(2025, 12, 5, tzinfo=timezone.utc)
    assert rows[0].raw_date == "05/12/2025"


def test_parse_csv_detects_alternative_headers() -> None:
    content = "Transaction Date,Narrative,Debit,Credit\n01/02/2025,RENT,500.00,\n02/02/2025,REFUND,,20\n"

    rows = parse_csv(content, "DMY")

    assert [(r.description, r.amount) for r in rows] == [("RENT", -500.0), ("REFUND", 20.0)]


def test_parse_csv_skips_bad_rows() -> None:
    content = (
        "Date,Description,Amount\n"
        "07/12/2025,ONLY TWO\n"
        "notadate,THING,1\n"
        "08/12/2025,,3\n"
        "\n"
        "09/12/2025,KEEP,5\n"
    )

    rows = parse_csv(content, "DMY")

    assert [r.description for r in rows] == ["KEEP"]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("Date,Description,Amount\n", "header row"),
        ("Desc,Amount\nx,1\n", '"Date" column'),
        ("Date,Amount\n01/01/2025,1\n", '"Description" column'),
        ("Date,Description\n01/01/2025,x\n", "amount columns"),
        ("Date,Description,Amount\nnope,x,1\n", "No valid transactions"),
    ],
)
def test_parse_csv_errors(content: str, message: str) -> None:
    with pytest.raises(ParseError, match=message):
        parse_csv(content)


def test_parse_ofx() -> None:
    rows = parse_ofx(OFX_BODY)

    assert [(r.description, r.amount) for r in rows] == [("WOOLWORTHS 1234", -12.5), ("ACME PAYROLL", 2000.0)]
    assert rows[0].date == datetime(2025, 1, 5, tzinfo=timezone.utc)


def test_parse_ofx_skips_incomplete_transactions() -> None:
    content = (
        "<OFX><BANKTRANLIST>"
        "<STMTTRN><DTPOSTED>20250105</DTPOSTED><TRNAMT>-4.00</TRNAMT></STMTTRN>"
        "<STMTTRN><TRNAMT>-5.00</TRNAMT><MEMO>NO DATE</MEMO></STMTTRN>"
        "<STMTTRN><DTPOSTED>20250106</DTPOSTED><MEMO>NO AMOUNT</MEMO></STMTTRN>"
        "<STMTTRN><DTPOSTED>20250107</DTPOSTED><TRNAMT>-6.00</TRNAMT><MEMO>COFFEE</MEMO></STMTTRN>"
        "</BANKTRANLIST></OFX>"
    )

    rows = parse_ofx(content)

    assert [(r.description, r.amount) for r in rows] == [("COFFEE", -6.0)]
    assert rows[0].date == datetime(2025, 1, 7, tzinfo=timezone.utc)


def test_parse_ofx_errors() -> None:
    with pytest.raises(ParseError):
        parse_ofx("not an ofx file")
    with pytest.raises(ParseError):
        parse_ofx("<OFX><BANKTRANLIST></BANKTRANLIST></OFX>")
    with pytest.raises(ParseError):
        parse_ofx("<OFX><STMTTRN></OFX>")


def test_parse_statement_handles_bom_bytes() -> None:
    content = b"\xef\xbb\xbfDate,Description,Amount\n2025-01-02,TEA,-3\n"

    rows = parse_statement(content, "csv")

    assert rows[0].description == "TEA"


def test_detect_file_type() -> None:
    assert detect_file_type("export.CSV") == "csv"
    assert detect_file_type("bank.ofx") == "ofx"
    with pytest.raises(ParseError):
        detect_file_type("statement.pdf")
