"""Column schemas for the uploadable finance tables."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Sequence

import yaml

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# SQLite keywords; schema names are interpolated into SQL unquoted.
_SQL_KEYWORDS = frozenset(
    """
    abort action add after all alter always analyze and as asc attach
    autoincrement before begin between by cascade case cast check collate
    column commit conflict constraint create cross current current_date
    current_time current_timestamp database default deferrable deferred delete
    desc detach distinct do drop each else end escape except exclude exclusive
    exists explain fail filter first following for foreign from full generated
    glob group groups having if ignore immediate in index indexed initially
    inner insert instead intersect into is isnull join key last left like limit
    match materialized natural no not nothing notnull null nulls of offset on
    or order others outer over partition plan pragma preceding primary query
    raise range recursive references regexp reindex release rename replace
    restrict returning right rollback row rows savepoint select set table temp
    temporary then ties to transaction trigger unbounded union unique update
    using vacuum values view virtual when where window with without
    """.split()
)
# Names the store already uses for itself.
_RESERVED_COLUMNS = frozenset({"id"})
_RESERVED_TABLES = frozenset({"data_uploads"})


def _is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER.match(name)) and name not in _SQL_KEYWORDS and not name.startswith("sqlite_")


class SchemaError(RuntimeError):
    """Raised when table schemas cannot be loaded or resolved."""


@dataclass(slots=True)
class TableSchema:
    """Storable columns plus validation rules for one upload table."""

    name: str
    columns: Sequence[str]
    required: Sequence[str]
    numeric: Sequence[str]

    def is_numeric(self, column: str) -> bool:
        return column in self.numeric


_LEDGER_COLUMNS = (
    "fund_code",
    "fund_name",
    "department_code",
    "department_name",
    "category",
    "account_code",
    "account_name",
    "amount",
)

DEFAULT_SCHEMAS: Dict[str, TableSchema] = {
    "budgets": TableSchema(
        name="budgets",
        columns=("fiscal_year",) + _LEDGER_COLUMNS,
        required=("fiscal_year", "department_name", "amount"),
        numeric=("fiscal_year", "amount"),
    ),
    "actuals": TableSchema(
        name="actuals",
        columns=("fiscal_year", "period", "fiscal_period") + _LEDGER_COLUMNS,
        required=("fiscal_year", "department_name", "amount"),
        numeric=("fiscal_year", "fiscal_period", "amount"),
    ),
    "transactions": TableSchema(
        name="transactions",
        columns=(
            "date",
            "fiscal_year",
            "fiscal_period",
            "fund_code",
            "fund_name",
            "department_code",
            "department_name",
            "account_code",
            "account_name",
            "vendor",
            "description",
            "amount",
        ),
        required=(
            "date",
            "fiscal_year",
            "fund_code",
            "fund_name",
            "department_code",
            "department_name",
            "account_code",
            "account_name",
            "vendor",
            "description",
            "amount",
        ),
        numeric=("fiscal_year", "fiscal_period", "amount"),
    ),
    "revenues": TableSchema(
        name="revenues",
        columns=("fiscal_year", "period", "fiscal_period") + _LEDGER_COLUMNS,
        required=("fiscal_year", "amount"),
        numeric=("fiscal_year", "fiscal_period", "amount"),
    ),
}


def _as_names(value: object, key: str, table: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise SchemaError(f"'{key}' for table '{table}' must be a list of column names")
    names = tuple(str(item).strip() for item in value)
    invalid = [item for item in names if not _is_identifier(item) or item in _RESERVED_COLUMNS]
    if invalid:
        raise SchemaError(f"Invalid column name(s) {invalid} for table '{table}'")
    return names


def _validate(name: str, entry: Mapping[str, object]) -> TableSchema:
    # Names end up as SQLite identifiers.
    if not _is_identifier(name) or name in _RESERVED_TABLES:
        raise SchemaError(f"Invalid table name '{name}'")
    columns = _as_names(entry.get("columns"), "columns", name)
    if not columns:
        raise SchemaError(f"Table '{name}' does not define any columns")
    required = _as_names(entry.get("required"), "required", name)
    numeric = _as_names(entry.get("numeric"), "numeric", name)
    unknown = [column for column in (*required, *numeric) if column not in columns]
    if unknown:
        raise SchemaError(
            f"Table '{name}' references columns not listed under 'columns': {sorted(set(unknown))}"
        )
    return TableSchema(name=name, columns=columns, required=required, numeric=numeric)


def load_schemas(path: Path | None = None) -> Dict[str, TableSchema]:
    """Return the built-in schemas, overridden by the YAML file at *path*."""

    schemas = dict(DEFAULT_SCHEMAS)
    if path is None:
        return schemas
    if not path.exists():
        raise SchemaError(f"Schema configuration not found at {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise SchemaError(f"Failed to parse schema configuration: {exc}") from exc
    tables = payload.get("tables") if isinstance(payload, Mapping) else None
    if not isinstance(tables, Mapping) or not tables:
        raise SchemaError("Schema configuration does not define any tables under 'tables'")
    for name, entry in tables.items():
        if not isinstance(entry, Mapping):
            raise SchemaError(f"Definition for table '{name}' must be a mapping")
        schemas[str(name)] = _validate(str(name), entry)
    return schemas


def get_schema(name: str, schemas: Mapping[str, TableSchema] | None = None) -> TableSchema:
    """Return the schema for table *name*."""

    schemas = DEFAULT_SCHEMAS if schemas is None else schemas
    try:
        return schemas[name]
    except KeyError as exc:
        raise SchemaError(
            f"Invalid or missing table name '{name}'; expected one of {', '.join(schemas)}"
        ) from exc


__all__ = ["DEFAULT_SCHEMAS", "SchemaError", "TableSchema", "get_schema", "load_schemas"]
