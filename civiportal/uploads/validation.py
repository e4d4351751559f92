"""Header checks, value coercion and sanitisation for uploaded CSV files."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence

from civiportal.tabular import HeaderedTable, parse_csv_with_headers

from .schemas import TableSchema

logger = logging.getLogger(__name__)

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)

# Range of a SQLite INTEGER.
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


class UploadValidationError(ValueError):
    """Raised when an uploaded file is rejected."""


@dataclass(slots=True)
class UploadPreview:
    """First rows of an upload together with header problems."""

    headers: List[str]
    rows: List[List[str]]
    missing_columns: List[str]
    total_rows: int

    @property
    def ok(self) -> bool:
        return not self.missing_columns


def missing_columns(headers: Sequence[str], schema: TableSchema) -> List[str]:
    present = set(headers)
    return [column for column in schema.required if column not in present]


def preview(text: str, schema: TableSchema, *, limit: int = 5) -> UploadPreview:
    """Parse *text* and report what an upload into *schema* would see."""

    table = parse_csv_with_headers(text)
    return UploadPreview(
        headers=list(table.headers),
        rows=[list(row) for row in table.rows[:limit]],
        missing_columns=missing_columns(table.headers, schema) if table.headers else list(schema.required),
        total_rows=table.row_count,
    )


def coerce_number(value: str) -> int | float | None:
    """Convert a decimal string to a number, or ``None`` when it is not one."""

    text = value.strip()
    if not text or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer() and re.fullmatch(r"[+-]?\d+", text):
        integer = int(text)
        if _INT64_MIN <= integer <= _INT64_MAX:
            return integer
    return number


def sanitize_text(value: str) -> str:
    """Strip script content and escape HTML-significant characters."""

    cleaned = _SCRIPT_BLOCK.sub("", value)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = _JAVASCRIPT_URL.sub("", cleaned)
    return cleaned.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _build_record(headers: Sequence[str], row: Sequence[str], schema: TableSchema) -> Dict[str, object]:
    record: Dict[str, object] = {}
    for index, header in enumerate(headers):
        if header not in schema.columns:
            continue
        raw = row[index] if index < len(row) else ""
        if raw == "":
            record[header] = None
        elif schema.is_numeric(header):
            record[header] = coerce_number(raw)
        else:
            record[header] = sanitize_text(raw)
    return record


def build_records(table: HeaderedTable, schema: TableSchema) -> List[Dict[str, object]]:
    """Turn parsed rows into column-keyed records validated against *schema*."""

    if not table.headers or not table.rows:
        raise UploadValidationError("CSV appears to be empty or missing data rows.")

    missing = missing_columns(table.headers, schema)
    if missing:
        raise UploadValidationError(
            f"CSV is missing required column(s) for {schema.name}: {', '.join(missing)}."
        )

    ignored = [header for header in table.headers if header not in schema.columns]
    if ignored:
        logger.warning("Ignoring column(s) not stored for %s: %s", schema.name, ", ".join(ignored))

    records = [_build_record(table.headers, row, schema) for row in table.rows]

    offenders = []
    for index, record in enumerate(records):
        absent = [column for column in schema.required if record.get(column) is None]
        if absent:
            offenders.append((index, absent))
    if offenders:
        columns: List[str] = []
        for _, absent in offenders:
            columns.extend(column for column in absent if column not in columns)
        first_index, first_missing = offenders[0]
        raise UploadValidationError(
            f"Validation failed: {len(offenders)} row(s) are missing required values in "
            f"column(s): {', '.join(columns)}. Example: CSV row {first_index + 2} is missing "
            f"[{', '.join(first_missing)}]."
        )
    return records


__all__ = [
    "UploadPreview",
    "UploadValidationError",
    "build_records",
    "coerce_number",
    "missing_columns",
    "preview",
    "sanitize_text",
]
