from __future__ import annotations

from datetime import date

import pytest
from openpyxl import load_workbook

from civiportal.export import ExportGenerator, build_filename, count_export, run_export
from civiportal.tabular import parse_csv_with_headers
from civiportal.uploads.storage import UploadStore


def _seed(sqlite_path) -> None:
    store = UploadStore(sqlite_path)
    store.apply(
        "budgets",
        "append",
        [
            {"fiscal_year": 2023, "department_name": "Police", "amount": 10},
            {"fiscal_year": 2024, "department_name": "Police", "amount": 12.5},
            {"fiscal_year": 2024, "department_name": 'Parks, "Rec"\nCulture', "amount": 7},
        ],
    )


def test_build_filename_variants() -> None:
    today = date(2024, 5, 1)

    assert build_filename("budgets", today=today) == "budgets_2024-05-01.csv"
    assert build_filename("budgets", [2024], ["Public Works Department"], today) == (
        "budgets_FY2024_Public-Works-Departm_2024-05-01.csv"
    )
    assert build_filename("revenues", [2023, 2024], ["A", "B"], today) == (
        "revenues_2-years_2-depts_2024-05-01.csv"
    )


def test_generate_csv_round_trips_through_parser(settings) -> None:
    _seed(settings.sqlite_path)
    generator = ExportGenerator(settings.sqlite_path, settings.output_dir)

    summary = generator.generate("budgets", years=[2024], today=date(2024, 5, 1))

    assert summary.rows == 2
    [csv_path] = summary.files
    assert csv_path.name == "budgets_FY2024_2024-05-01.csv"
    table = parse_csv_with_headers(csv_path.read_text(encoding="utf-8"))
    assert table.headers[0] == "fiscal_year"
    column = table.headers.index("department_name")
    assert [row[column] for row in table.rows] == ['Parks, "Rec"\nCulture', "Police"]


def test_generate_workbook(settings) -> None:
    _seed(settings.sqlite_path)
    generator = ExportGenerator(settings.sqlite_path, settings.output_dir)

    summary = generator.generate("budgets", departments=["Police"], workbook=True)

    workbook_path = summary.files[1]
    assert workbook_path.suffix == ".xlsx"
    sheet = load_workbook(workbook_path).active
    values = list(sheet.values)
    assert sheet.title == "budgets"
    assert values[0][0] == "fiscal_year"
    assert len(values) == 3


def test_run_export_with_no_rows_writes_headers(run_context, caplog) -> None:
    with caplog.at_level("WARNING"):
        summary = run_export(run_context, "revenues")

    assert summary.rows == 0
    text = summary.files[0].read_text(encoding="utf-8")
    assert text.startswith("fiscal_year,period,fiscal_period")
    assert summary.files[0].name == "revenues_2024-01-01.csv"
    assert "No revenues rows matched" in caplog.text


def _seed_transactions(sqlite_path) -> None:
    base = {"fiscal_year": 2024, "department_name": "Police", "description": "Supplies"}
    UploadStore(sqlite_path).apply(
        "transactions",
        "append",
        [
            {**base, "date": "2024-07-01", "vendor": "Bolt", "amount": 2},
            {**base, "date": "2024-08-15", "vendor": "Dune", "amount": 4},
            {**base, "date": "2024-06-30", "vendor": "Acme", "amount": 1},
            {**base, "date": "2024-07-20", "vendor": "Cord", "amount": 3},
        ],
    )


def _column(path, name: str) -> list:
    table = parse_csv_with_headers(path.read_text(encoding="utf-8"))
    index = table.headers.index(name)
    return [row[index] for row in table.rows]


def test_build_filename_marks_date_ranges() -> None:
    today = date(2024, 5, 1)

    assert build_filename("transactions", today=today, start_date=date(2024, 1, 1)) == (
        "transactions_dated_2024-05-01.csv"
    )
    assert build_filename("transactions", [2024], today=today, end_date="2024-06-30") == (
        "transactions_FY2024_dated_2024-05-01.csv"
    )


def test_exports_use_per_table_ordering(settings) -> None:
    _seed_transactions(settings.sqlite_path)
    UploadStore(settings.sqlite_path).apply(
        "revenues",
        "append",
        [{"fiscal_year": year, "amount": year} for year in (2022, 2024, 2023)],
    )
    generator = ExportGenerator(settings.sqlite_path, settings.output_dir)

    transactions = generator.generate("transactions", today=date(2024, 9, 1))
    revenues = generator.generate("revenues", today=date(2024, 9, 1))

    assert _column(transactions.files[0], "date") == ["2024-08-15", "2024-07-20", "2024-07-01", "2024-06-30"]
    assert _column(revenues.files[0], "fiscal_year") == ["2024", "2023", "2022"]


def test_export_date_range(settings) -> None:
    _seed_transactions(settings.sqlite_path)
    generator = ExportGenerator(settings.sqlite_path, settings.output_dir)

    summary = generator.generate(
        "transactions",
        start_date=date(2024, 7, 1),
        end_date=date(2024, 7, 31),
        today=date(2024, 9, 1),
    )

    assert summary.files[0].name == "transactions_dated_2024-09-01.csv"
    assert _column(summary.files[0], "vendor") == ["Cord", "Bolt"]
    assert generator.count("transactions", start_date=date(2024, 7, 1), end_date=date(2024, 7, 31)) == 2


def test_export_row_cap(settings) -> None:
    _seed_transactions(settings.sqlite_path)
    generator = ExportGenerator(settings.sqlite_path, settings.output_dir, max_rows=3)

    summary = generator.generate("transactions", today=date(2024, 9, 1))

    assert summary.rows == 3
    assert summary.matched == 4
    assert summary.truncated
    assert _column(summary.files[0], "vendor") == ["Dune", "Cord", "Bolt"]


def test_run_export_logs_capped_extract(run_context, caplog) -> None:
    _seed_transactions(run_context.settings.sqlite_path)
    run_context.settings.export_max_rows = 1

    with caplog.at_level("WARNING"):
        summary = run_export(run_context, "transactions")

    assert summary.rows == 1
    assert "stopped at 1 of 4 matching rows" in caplog.text


def test_count_export(run_context) -> None:
    _seed(run_context.settings.sqlite_path)

    assert count_export(run_context, "budgets") == 3
    assert count_export(run_context, "budgets", years=[2024], departments=["Police"]) == 1
    with pytest.raises(ValueError):
        count_export(run_context, "budgets", start_date=date(2024, 1, 1))


def test_workbook_keeps_formula_like_text_as_text(settings) -> None:
    formula = '=HYPERLINK("http://example.com","click")'
    UploadStore(settings.sqlite_path).apply(
        "budgets",
        "append",
        [{"fiscal_year": 2024, "department_name": formula, "amount": 1}],
    )
    generator = ExportGenerator(settings.sqlite_path, settings.output_dir)

    summary = generator.generate("budgets", workbook=True, today=date(2024, 5, 1))

    sheet = load_workbook(summary.files[1]).active
    column = [cell.value for cell in sheet[1]].index("department_name") + 1
    cell = sheet.cell(row=2, column=column)
    assert cell.value == formula
    assert cell.data_type == "s"
