"""SQLite persistence for uploaded finance tables and the upload audit log."""
from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .schemas import DEFAULT_SCHEMAS, TableSchema, get_schema

MODES = ("append", "replace_year", "replace_table")
DELETE_YEAR = "delete_year"

_INTEGER_COLUMNS = {"fiscal_year", "fiscal_period"}


@dataclass(slots=True)
class UploadRecord:
    """Row of the ``data_uploads`` audit table."""

    id: int
    created_at: str
    table_name: str
    mode: str
    row_count: int
    fiscal_year: int | None
    filename: str | None
    admin_identifier: str | None


def _valid_fiscal_year(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Invalid fiscal year.")
    if not math.isfinite(value) or not float(value).is_integer() or value <= 0:
        raise ValueError("Invalid fiscal year.")
    return int(value)


def _iso(value: date | str) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)


class UploadStore:
    """Utility wrapper around SQLite for uploaded rows and their audit trail."""

    def __init__(
        self,
        path: Path,
        schemas: Mapping[str, TableSchema] | None = None,
        *,
        chunk_size: int = 5000,
    ) -> None:
        self.path = path
        self.schemas = dict(DEFAULT_SCHEMAS if schemas is None else schemas)
        self.chunk_size = max(1, chunk_size)
        self._ensure_schema()

    def _column_type(self, schema: TableSchema, column: str) -> str:
        if column in _INTEGER_COLUMNS:
            return "INTEGER"
        if schema.is_numeric(column):
            return "REAL"
        return "TEXT"

    def _ensure_schema(self) -> None:
        with sqlite3.connect(self.path) as connection:
            for schema in self.schemas.values():
                columns = ",\n".join(
                    f"{column} {self._column_type(schema, column)}" for column in schema.columns
                )
                connection.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {schema.name} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        {columns}
                    )
                    """
                )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS data_uploads (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    table_name TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    row_count INTEGER NOT NULL,
                    fiscal_year INTEGER,
                    filename TEXT,
                    admin_identifier TEXT
                )
                """
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write(
        self,
        connection: sqlite3.Connection,
        schema: TableSchema,
        mode: str,
        records: Sequence[Mapping[str, object]],
        replace_year: int | None,
    ) -> int:
        if mode not in MODES:
            raise ValueError(f"Invalid upload mode '{mode}'")
        if mode == "replace_year" and replace_year is None:
            raise ValueError("replace_year is required for replace_year mode")
        if mode == "replace_year" and "fiscal_year" not in schema.columns:
            raise ValueError(f"Table '{schema.name}' has no fiscal_year column to replace by")

        columns = list(schema.columns)
        placeholders = ", ".join("?" for _ in columns)
        statement = f"INSERT INTO {schema.name} ({', '.join(columns)}) VALUES ({placeholders})"
        if mode == "replace_year":
            connection.execute(f"DELETE FROM {schema.name} WHERE fiscal_year = ?", (replace_year,))
        elif mode == "replace_table":
            connection.execute(f"DELETE FROM {schema.name}")
        inserted = 0
        for start in range(0, len(records), self.chunk_size):
            chunk = records[start:start + self.chunk_size]
            connection.executemany(
                statement,
                [tuple(record.get(column) for column in columns) for record in chunk],
            )
            inserted += len(chunk)
        return inserted

    def _audit(
        self,
        connection: sqlite3.Connection,
        table: str,
        mode: str,
        row_count: int,
        fiscal_year: int | None,
        filename: str | None,
        admin_identifier: str | None,
    ) -> int:
        cursor = connection.execute(
            """
            INSERT INTO data_uploads (
                table_name,
                mode,
                row_count,
                fiscal_year,
                filename,
                admin_identifier
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (table, mode, row_count, fiscal_year, filename, admin_identifier),
        )
        return int(cursor.lastrowid)

    def apply(
        self,
        table: str,
        mode: str,
        records: Sequence[Mapping[str, object]],
        *,
        replace_year: int | None = None,
    ) -> int:
        """Clear rows according to *mode* and insert *records* in one transaction."""

        schema = get_schema(table, self.schemas)
        with sqlite3.connect(self.path) as connection:
            return self._write(connection, schema, mode, records, replace_year)

    def store_upload(
        self,
        table: str,
        mode: str,
        records: Sequence[Mapping[str, object]],
        *,
        replace_year: int | None = None,
        fiscal_year: int | None = None,
        filename: str | None = None,
        admin_identifier: str | None = None,
    ) -> Tuple[int, int]:
        """Apply *records* and write their audit entry in the same transaction.

        Returns the inserted row count and the audit entry identifier. When
        either step fails nothing is committed.
        """

        schema = get_schema(table, self.schemas)
        with sqlite3.connect(self.path) as connection:
            inserted = self._write(connection, schema, mode, records, replace_year)
            upload_id = self._audit(
                connection, schema.name, mode, inserted, fiscal_year, filename, admin_identifier
            )
        return inserted, upload_id

    def delete_year(
        self,
        table: str,
        fiscal_year: object,
        *,
        admin_identifier: str | None = None,
    ) -> int:
        """Delete every row of *fiscal_year* from *table* and return how many went."""

        schema = get_schema(table, self.schemas)
        year = _valid_fiscal_year(fiscal_year)
        if "fiscal_year" not in schema.columns:
            raise ValueError(f"Table '{schema.name}' has no fiscal_year column to delete by")
        with sqlite3.connect(self.path) as connection:
            cursor = connection.execute(f"DELETE FROM {schema.name} WHERE fiscal_year = ?", (year,))
            deleted = max(cursor.rowcount, 0)
            self._audit(connection, schema.name, DELETE_YEAR, deleted, year, None, admin_identifier)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def history(self, *, limit: int = 20, table: str | None = None) -> List[UploadRecord]:
        """Return the most recent audit entries, newest first."""

        query = "SELECT * FROM data_uploads"
        params: list[object] = []
        if table:
            query += " WHERE table_name = ?"
            params.append(table)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with sqlite3.connect(self.path) as connection:
            connection.row_factory = sqlite3.Row
            rows = connection.execute(query, params).fetchall()
        return [UploadRecord(**dict(row)) for row in rows]

    def fiscal_years(self, table: str) -> List[int]:
        """Return distinct fiscal years stored for *table*, newest first."""

        schema = get_schema(table, self.schemas)
        with sqlite3.connect(self.path) as connection:
            rows = connection.execute(
                f"SELECT DISTINCT fiscal_year FROM {schema.name} "
                "WHERE fiscal_year IS NOT NULL ORDER BY fiscal_year DESC"
            ).fetchall()
        return [int(row[0]) for row in rows]

    def _where(
        self,
        schema: TableSchema,
        years: Iterable[int] | None,
        departments: Iterable[str] | None,
        start_date: date | str | None,
        end_date: date | str | None,
    ) -> Tuple[str, List[object]]:
        year_list = list(years or [])
        department_list = list(departments or [])
        requested = (
            ("fiscal_year", bool(year_list)),
            ("department_name", bool(department_list)),
            ("date", start_date is not None or end_date is not None),
        )
        for column, wanted in requested:
            if wanted and column not in schema.columns:
                raise ValueError(f"Table '{schema.name}' has no '{column}' column to filter on")

        clauses: List[str] = []
        params: List[object] = []
        if year_list:
            clauses.append(f"fiscal_year IN ({', '.join('?' for _ in year_list)})")
            params.extend(year_list)
        if department_list:
            clauses.append(f"department_name IN ({', '.join('?' for _ in department_list)})")
            params.extend(department_list)
        if start_date is not None:
            clauses.append("date >= ?")
            params.append(_iso(start_date))
        if end_date is not None:
            clauses.append("date <= ?")
            params.append(_iso(end_date))
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def count(
        self,
        table: str,
        *,
        years: Iterable[int] | None = None,
        departments: Iterable[str] | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> int:
        """Return how many stored rows of *table* match the filters."""

        schema = get_schema(table, self.schemas)
        where, params = self._where(schema, years, departments, start_date, end_date)
        with sqlite3.connect(self.path) as connection:
            return int(connection.execute(f"SELECT COUNT(*) FROM {schema.name}{where}", params).fetchone()[0])

    def rows(
        self,
        table: str,
        *,
        years: Iterable[int] | None = None,
        departments: Iterable[str] | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Dict[str, object]]:
        """Return stored rows for *table*, optionally filtered, ordered and capped.

        Rows come back in insertion order unless *order_by* names a column;
        insertion order then breaks ties.
        """

        schema = get_schema(table, self.schemas)
        where, params = self._where(schema, years, departments, start_date, end_date)
        query = f"SELECT {', '.join(schema.columns)} FROM {schema.name}{where}"
        if order_by is not None:
            if order_by not in schema.columns:
                raise ValueError(f"Table '{schema.name}' has no '{order_by}' column to order by")
            query += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}, id"
        else:
            query += " ORDER BY id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(max(0, limit))
        with sqlite3.connect(self.path) as connection:
            connection.row_factory = sqlite3.Row
            fetched = connection.execute(query, params).fetchall()
        return [dict(row) for row in fetched]


__all__ = ["DELETE_YEAR", "MODES", "UploadRecord", "UploadStore"]
