"""CSV serialisation used by data exports."""
from __future__ import annotations

from typing import Iterable, Sequence

from .parser import DELIMITER, QUOTE

__all__ = ["format_csv", "quote_field"]


def quote_field(value: object) -> str:
    """Quote *value* for a CSV data cell, doubling embedded quotes."""

    if value is None:
        return ""
    text = str(value)
    return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE


def format_csv(
    headers: Sequence[str],
    rows: Iterable[Sequence[object]],
    *,
    line_terminator: str = "\n",
) -> str:
    """Render *headers* and *rows* as CSV text.

    Header names are written bare; every data cell is quoted.
    """

    lines = [DELIMITER.join(headers)]
    for row in rows:
        lines.append(DELIMITER.join(quote_field(value) for value in row))
    return line_terminator.join(lines)
