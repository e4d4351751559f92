"""Utilities to produce public CSV/Excel extracts of stored finance data."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from openpyxl import Workbook

from civiportal.tabular import format_csv
from civiportal.uploads.schemas import TableSchema, get_schema
from civiportal.uploads.storage import UploadStore

MAX_ROWS = 50_000

# Column and direction (descending?) each built-in table is exported in.
EXPORT_ORDER: Dict[str, Tuple[str, bool]] = {
    "budgets": ("department_name", False),
    "actuals": ("department_name", False),
    "transactions": ("date", True),
    "revenues": ("fiscal_year", True),
}


@dataclass(slots=True)
class ExportSummary:
    """Details about the generated export files."""

    rows: int
    files: List[Path]
    matched: int = 0

    @property
    def truncated(self) -> bool:
        return self.matched > self.rows


def _slug(value: str) -> str:
    return re.sub(r"\s+", "-", value)[:20]


def build_filename(
    table: str,
    years: Sequence[int] | None = None,
    departments: Sequence[str] | None = None,
    today: date | None = None,
    *,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
) -> str:
    """Return a descriptive CSV file name for an export of *table*.

    ``budgets_FY2024_Police_2024-05-01.csv`` for one year and department,
    ``budgets_2-years_3-depts_2024-05-01.csv`` for several, with ``_dated``
    before the date when a date range was applied.
    """

    parts = [table]
    if years:
        parts.append(f"FY{years[0]}" if len(years) == 1 else f"{len(years)}-years")
    if departments:
        parts.append(_slug(departments[0]) if len(departments) == 1 else f"{len(departments)}-depts")
    if start_date or end_date:
        parts.append("dated")
    parts.append((today or date.today()).isoformat())
    return "_".join(parts) + ".csv"


class ExportGenerator:
    """Create CSV/Excel extracts from the SQLite upload store."""

    def __init__(
        self,
        sqlite_path: Path,
        output_dir: Path,
        schemas: Mapping[str, TableSchema] | None = None,
        *,
        max_rows: int = MAX_ROWS,
    ) -> None:
        self.sqlite_path = sqlite_path
        self.output_dir = output_dir
        self.max_rows = max_rows
        self.store = UploadStore(sqlite_path, schemas)

    def count(
        self,
        table: str,
        *,
        years: Sequence[int] | None = None,
        departments: Sequence[str] | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> int:
        """Return how many rows an export with these filters would match."""

        return self.store.count(
            table,
            years=years,
            departments=departments,
            start_date=start_date,
            end_date=end_date,
        )

    def generate(
        self,
        table: str,
        *,
        years: Sequence[int] | None = None,
        departments: Sequence[str] | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        workbook: bool = False,
        today: date | None = None,
    ) -> ExportSummary:
        """Write the export files for *table* and return what was produced."""

        columns = list(get_schema(table, self.store.schemas).columns)
        filters = dict(years=years, departments=departments, start_date=start_date, end_date=end_date)
        matched = self.store.count(table, **filters)
        order_by, descending = EXPORT_ORDER.get(table, (None, False))
        if order_by not in columns:
            order_by = None
        rows = self.store.rows(
            table,
            order_by=order_by,
            descending=descending,
            limit=self.max_rows,
            **filters,
        )

        self.output_dir.mkdir(parents=True, exist_ok=True)
        filename = build_filename(table, years, departments, today, start_date=start_date, end_date=end_date)
        csv_path = self.output_dir / filename
        self._write_csv(csv_path, columns, rows)
        files = [csv_path]
        if workbook:
            workbook_path = csv_path.with_suffix(".xlsx")
            self._write_workbook(workbook_path, table, columns, rows)
            files.append(workbook_path)
        return ExportSummary(rows=len(rows), files=files, matched=matched)

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def _write_csv(self, path: Path, columns: List[str], rows: Iterable[Dict[str, object]]) -> None:
        text = format_csv(columns, ([row.get(column) for column in columns] for row in rows))
        path.write_text(text + "\n", encoding="utf-8")

    def _write_workbook(
        self,
        path: Path,
        title: str,
        columns: List[str],
        rows: Iterable[Dict[str, object]],
    ) -> None:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = title[:31]
        sheet.append(columns)
        for row in rows:
            sheet.append([row.get(column) for column in columns])
            # openpyxl treats text starting with "=" as a formula.
            for cell in sheet[sheet.max_row]:
                if isinstance(cell.value, str) and cell.value.startswith("="):
                    cell.data_type = "s"
        workbook.save(path)


__all__ = ["EXPORT_ORDER", "MAX_ROWS", "ExportGenerator", "ExportSummary", "build_filename"]
