from __future__ import annotations

import pytest

from civiportal.tabular import parse_csv_with_headers
from civiportal.uploads.schemas import DEFAULT_SCHEMAS
from civiportal.uploads.validation import (
    UploadValidationError,
    build_records,
    coerce_number,
    preview,
    sanitize_text,
)

BUDGETS = DEFAULT_SCHEMAS["budgets"]


def test_build_records_coerces_numeric_columns() -> None:
    table = parse_csv_with_headers(
        "fiscal_year,department_name,amount,fund_name\n"
        '2024,"Parks, Recreation & Culture",750000.50,General\n'
        "2024,Police,1500000,\n"
    )

    records = build_records(table, BUDGETS)

    assert records == [
        {
            "fiscal_year": 2024,
            "department_name": "Parks, Recreation &amp; Culture",
            "amount": 750000.5,
            "fund_name": "General",
        },
        {
            "fiscal_year": 2024,
            "department_name": "Police",
            "amount": 1500000,
            "fund_name": None,
        },
    ]


def test_build_records_drops_unknown_columns(caplog) -> None:
    table = parse_csv_with_headers("fiscal_year,department_name,amount,notes\n2024,Fire,10,hi")

    with caplog.at_level("WARNING"):
        records = build_records(table, BUDGETS)

    assert "notes" not in records[0]
    assert "notes" in caplog.text


def test_build_records_rejects_missing_headers() -> None:
    table = parse_csv_with_headers("fiscal_year,amount\n2024,10")

    with pytest.raises(UploadValidationError, match="missing required column\\(s\\) for budgets: department_name"):
        build_records(table, BUDGETS)


def test_build_records_rejects_header_only_file() -> None:
    with pytest.raises(UploadValidationError, match="empty or missing data rows"):
        build_records(parse_csv_with_headers("fiscal_year,department_name,amount"), BUDGETS)


def test_build_records_reports_missing_values() -> None:
    table = parse_csv_with_headers(
        "fiscal_year,department_name,amount\n"
        "2024,Police,100\n"
        "2024,,abc\n"
        "2024,Fire\n"
    )

    with pytest.raises(UploadValidationError) as excinfo:
        build_records(table, BUDGETS)

    message = str(excinfo.value)
    assert "2 row(s)" in message
    assert "department_name, amount" in message
    assert "CSV row 3 is missing [department_name, amount]" in message


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024", 2024),
        (" -15 ", -15),
        ("1500.25", 1500.25),
        ("1e3", 1000.0),
        ("1,000", None),
        ("1_000", None),
        ("nan", None),
        ("inf", None),
        ("", None),
        ("abc", None),
    ],
)
def test_coerce_number(raw: str, expected: object) -> None:
    assert coerce_number(raw) == expected


def test_sanitize_text_strips_script_content() -> None:
    assert sanitize_text("<script>alert(1)</script>Vendor") == "Vendor"
    assert sanitize_text('<a onclick="x">') == '&lt;a "x"&gt;'
    assert sanitize_text("javascript:alert(1)") == "alert(1)"
    assert sanitize_text("Smith & Sons") == "Smith &amp; Sons"


def test_preview_reports_missing_columns() -> None:
    result = preview("fiscal_year,amount\n2024,1\n2024,2\n2024,3", BUDGETS, limit=2)

    assert result.headers == ["fiscal_year", "amount"]
    assert result.rows == [["2024", "1"], ["2024", "2"]]
    assert result.total_rows == 3
    assert result.missing_columns == ["department_name"]
    assert not result.ok


def test_preview_of_empty_text() -> None:
    result = preview("", BUDGETS)

    assert result.headers == []
    assert result.missing_columns == list(BUDGETS.required)


def test_coerce_number_keeps_oversized_integers_storable() -> None:
    assert coerce_number("9223372036854775807") == 2 ** 63 - 1
    assert isinstance(coerce_number("9223372036854775807"), int)

    oversized = coerce_number("100000000000000000000")

    assert isinstance(oversized, float)
    assert oversized == 1e20
