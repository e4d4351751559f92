from __future__ import annotations

from pathlib import Path

import pytest

from civiportal.uploads.schemas import DEFAULT_SCHEMAS, SchemaError, get_schema, load_schemas


def test_builtin_schemas_cover_upload_tables() -> None:
    assert set(DEFAULT_SCHEMAS) == {"budgets", "actuals", "transactions", "revenues"}
    for schema in DEFAULT_SCHEMAS.values():
        assert set(schema.required) <= set(schema.columns)
        assert set(schema.numeric) <= set(schema.columns)


def test_load_schemas_without_path_returns_defaults() -> None:
    assert load_schemas() == DEFAULT_SCHEMAS


def test_yaml_overrides_and_extends_schemas(tmp_path: Path) -> None:
    config = tmp_path / "schemas.yaml"
    config.write_text(
        """
tables:
  budgets:
    columns: [fiscal_year, department_name, amount]
    required: [fiscal_year, amount]
    numeric: [fiscal_year, amount]
  grants:
    columns: [fiscal_year, grantor, amount]
    required: [grantor]
""",
        encoding="utf-8",
    )

    schemas = load_schemas(config)

    assert schemas["budgets"].required == ("fiscal_year", "amount")
    assert schemas["grants"].columns == ("fiscal_year", "grantor", "amount")
    assert schemas["grants"].numeric == ()
    assert schemas["transactions"] is DEFAULT_SCHEMAS["transactions"]


def test_yaml_rejects_required_column_outside_columns(tmp_path: Path) -> None:
    config = tmp_path / "schemas.yaml"
    config.write_text(
        "tables:\n  grants:\n    columns: [grantor]\n    required: [amount]\n",
        encoding="utf-8",
    )

    with pytest.raises(SchemaError):
        load_schemas(config)


def test_yaml_rejects_unsafe_identifiers(tmp_path: Path) -> None:
    config = tmp_path / "schemas.yaml"
    config.write_text(
        'tables:\n  "grants; DROP TABLE budgets":\n    columns: [grantor]\n',
        encoding="utf-8",
    )

    with pytest.raises(SchemaError):
        load_schemas(config)


def test_missing_schema_file(tmp_path: Path) -> None:
    with pytest.raises(SchemaError):
        load_schemas(tmp_path / "absent.yaml")


def test_get_schema_unknown_table() -> None:
    assert get_schema("budgets").name == "budgets"
    with pytest.raises(SchemaError):
        get_schema("payroll")


@pytest.mark.parametrize("columns", ["[id, amount]", "[order, amount]", "[amount, group]"])
def test_yaml_rejects_reserved_column_names(tmp_path: Path, columns: str) -> None:
    config = tmp_path / "schemas.yaml"
    config.write_text(f"tables:\n  grants:\n    columns: {columns}\n", encoding="utf-8")

    with pytest.raises(SchemaError, match="Invalid column name"):
        load_schemas(config)


@pytest.mark.parametrize("name", ["data_uploads", "select", "sqlite_stat1"])
def test_yaml_rejects_reserved_table_names(tmp_path: Path, name: str) -> None:
    config = tmp_path / "schemas.yaml"
    config.write_text(f"tables:\n  {name}:\n    columns: [amount]\n", encoding="utf-8")

    with pytest.raises(SchemaError, match="Invalid table name"):
        load_schemas(config)
