"""Tabular text parsing and serialisation."""
from __future__ import annotations

from .parser import HeaderedTable, Row, Table, parse_csv, parse_csv_with_headers
from .writer import format_csv, quote_field

__all__ = [
    "HeaderedTable",
    "Row",
    "Table",
    "format_csv",
    "parse_csv",
    "parse_csv_with_headers",
    "quote_field",
]
