"""CSV tokenizer for uploaded budget, actuals, transaction and revenue files.

The parser is a single forward scan over the text driven by a small state
enumeration. It never raises on malformed input:

* an unterminated quoted field absorbs everything up to the end of input;
* a quote in the middle of an unquoted field opens a quoted section and the
  text before, inside and after it ends up in the same field;
* text following a closing quote is appended to that field.

Every field is trimmed of surrounding whitespace and returned as a string.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List

__all__ = ["HeaderedTable", "Row", "Table", "parse_csv", "parse_csv_with_headers"]

Row = List[str]
Table = List[Row]

DELIMITER = ","
QUOTE = '"'
_BOM = "\ufeff"


class _State(enum.Enum):
    UNQUOTED = "unquoted"
    QUOTED = "quoted"
    QUOTE_IN_QUOTED = "quote_in_quoted"


@dataclass(slots=True)
class HeaderedTable:
    """A parsed table split into its header row and data rows."""

    headers: Row = field(default_factory=list)
    rows: Table = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


class _TableBuilder:
    """Accumulates characters into fields and fields into rows."""

    def __init__(self) -> None:
        self.rows: Table = []
        self._row: Row = []
        self._chunks: List[str] = []
        self._has_content = False

    def append(self, chunk: str) -> None:
        self._chunks.append(chunk)
        if not self._has_content and chunk.strip():
            self._has_content = True

    def mark(self) -> None:
        """Flag the current line as a real row even if its fields are empty."""

        self._has_content = True

    def end_field(self) -> None:
        self._row.append("".join(self._chunks).strip())
        self._chunks = []

    def end_row(self) -> None:
        self.end_field()
        # Whitespace-only lines outside quotes are dropped.
        if self._has_content:
            self.rows.append(self._row)
        self._row = []
        self._has_content = False


def parse_csv(text: str | None) -> Table:
    """Parse CSV *text* into a list of rows of string fields.

    ``\\r\\n``, ``\\n`` and ``\\r`` are all accepted as line terminators, even
    mixed within one input. Line breaks inside quoted fields are kept as data.
    Empty or whitespace-only input yields an empty list.
    """

    if not text or not text.strip():
        return []
    if text.startswith(_BOM):
        text = text[len(_BOM):]

    builder = _TableBuilder()
    state = _State.UNQUOTED
    index = 0
    length = len(text)

    while index < length:
        if state is _State.QUOTED:
            closing = text.find(QUOTE, index)
            if closing == -1:
                builder.append(text[index:])
                index = length
                continue
            builder.append(text[index:closing])
            state = _State.QUOTE_IN_QUOTED
            index = closing + 1
            continue

        char = text[index]
        if state is _State.QUOTE_IN_QUOTED:
            if char == QUOTE:
                builder.append(QUOTE)
                state = _State.QUOTED
                index += 1
                continue
            # The previous quote closed the section; reprocess this character.
            state = _State.UNQUOTED
            continue

        if char == QUOTE:
            builder.mark()
            state = _State.QUOTED
        elif char == DELIMITER:
            builder.mark()
            builder.end_field()
        elif char == "\r" or char == "\n":
            if char == "\r" and index + 1 < length and text[index + 1] == "\n":
                index += 1
            builder.end_row()
        else:
            builder.append(char)
        index += 1

    builder.end_row()
    return builder.rows


def parse_csv_with_headers(text: str | None) -> HeaderedTable:
    """Parse *text* and split the first row off as headers.

    Data rows are returned as parsed; their length is not checked against the
    header row.
    """

    rows = parse_csv(text)
    if not rows:
        return HeaderedTable(headers=[], rows=[])
    return HeaderedTable(headers=rows[0], rows=rows[1:])
