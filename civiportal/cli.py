"""Command line interface for the CiviPortal data tooling."""
from __future__ import annotations

import argparse
import json
import logging
import logging.config
import os
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

import yaml

from civiportal import create_default_context
from civiportal.core import package_version
from civiportal.export import count_export, run_export
from civiportal.settings import Settings
from civiportal.tabular import parse_csv
from civiportal.uploads import (
    MODES,
    SchemaError,
    UploadRequest,
    UploadStore,
    delete_fiscal_year,
    get_schema,
    load_schemas,
    preview,
    read_upload,
    run_upload,
)

logger = logging.getLogger(__name__)


def load_environment() -> None:
    candidates = []
    if env_file := os.getenv("ENV_FILE"):
        candidates.append(Path(env_file))
    candidates.append(Path(".env"))

    for path in candidates:
        if not path.exists():
            continue
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, _, value = line.partition("=")
                os.environ.setdefault(key.strip(), value.strip().strip('"'))


def configure_logging() -> None:
    """Configure logging using YAML/INI files or basic configuration."""

    config_candidates = []
    if config_env := os.getenv("LOGGING_CONFIG"):
        config_candidates.append(Path(config_env))
    config_candidates.extend(
        Path(name) for name in ("logging.yaml", "logging.yml", "logging.ini")
    )

    for config_path in config_candidates:
        if not config_path.exists():
            continue
        suffix = config_path.suffix.lower()
        try:
            if suffix in {".ini", ".cfg"}:
                logging.config.fileConfig(config_path, disable_existing_loggers=False)
            else:
                with config_path.open("r", encoding="utf-8") as handle:
                    logging.config.dictConfig(yaml.safe_load(handle) or {})
            return
        except (OSError, ValueError, TypeError, KeyError, yaml.YAMLError) as exc:
            print(
                f"Failed to load logging config {config_path}: {exc}. Falling back to basic logging.",
                file=sys.stderr,
            )
            break

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def command_parse(args: argparse.Namespace) -> None:
    settings = Settings.load()
    text = read_upload(Path(args.path), max_bytes=settings.max_upload_bytes)
    json.dump(parse_csv(text), sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def command_preview(args: argparse.Namespace) -> None:
    settings = Settings.load()
    schema = get_schema(args.table, load_schemas(settings.schema_config))
    text = read_upload(Path(args.path), max_bytes=settings.max_upload_bytes)
    result = preview(text, schema, limit=args.limit)
    print(f"Columns: {', '.join(result.headers) or '(none)'}")
    print(f"Data rows: {result.total_rows}")
    for row in result.rows:
        print("  " + " | ".join(row))
    if result.ok:
        print(f"All required columns for {schema.name} are present.")
    else:
        print(
            f"CSV is missing required column(s) for {schema.name}: {', '.join(result.missing_columns)}"
        )


def command_upload(args: argparse.Namespace) -> None:
    context = create_default_context()
    request = UploadRequest(
        table=args.table,
        mode=args.mode,
        replace_year=args.replace_year,
        filename=args.filename,
        admin_identifier=args.admin,
    )
    result = run_upload(context, Path(args.path), request)
    print(result.message)


def command_export(args: argparse.Namespace) -> None:
    context = create_default_context()
    summary = run_export(
        context,
        args.table,
        years=args.years,
        departments=args.departments,
        start_date=args.start_date,
        end_date=args.end_date,
        workbook=args.xlsx,
    )
    for artifact in summary.files:
        print(artifact)


def command_count(args: argparse.Namespace) -> None:
    context = create_default_context()
    total = count_export(
        context,
        args.table,
        years=args.years,
        departments=args.departments,
        start_date=args.start_date,
        end_date=args.end_date,
    )
    print(total)


def command_delete_year(args: argparse.Namespace) -> None:
    context = create_default_context()
    deleted = delete_fiscal_year(context, args.table, args.fiscal_year, admin_identifier=args.admin)
    print(f"Deleted FY{args.fiscal_year} from {args.table}. Rows deleted: {deleted}.")


def command_history(args: argparse.Namespace) -> None:
    settings = Settings.load()
    settings.ensure_directories()
    store = UploadStore(settings.sqlite_path, load_schemas(settings.schema_config))
    entries = store.history(limit=args.limit, table=args.table)
    if not entries:
        print("No uploads recorded.")
        return
    for entry in entries:
        year = entry.fiscal_year if entry.fiscal_year is not None else "-"
        print(
            f"{entry.created_at}  {entry.table_name:<12} {entry.mode:<13} "
            f"rows={entry.row_count:<8} FY={year}  {entry.filename or ''}  {entry.admin_identifier or ''}"
        )


def _add_export_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("table")
    parser.add_argument("--year", dest="years", type=int, action="append")
    parser.add_argument("--department", dest="departments", action="append")
    parser.add_argument("--start-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--end-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CiviPortal finance data tooling.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_version()}")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    parser_parse = subparsers.add_parser("parse", help="Print a CSV file as JSON rows")
    parser_parse.add_argument("path")
    parser_parse.set_defaults(func=command_parse)

    parser_preview = subparsers.add_parser("preview", help="Check a CSV file against a table schema")
    parser_preview.add_argument("table")
    parser_preview.add_argument("path")
    parser_preview.add_argument("--limit", type=int, default=5)
    parser_preview.set_defaults(func=command_preview)

    parser_upload = subparsers.add_parser("upload", help="Validate and store a CSV file")
    parser_upload.add_argument("table")
    parser_upload.add_argument("path")
    parser_upload.add_argument("--mode", choices=MODES, default="append")
    parser_upload.add_argument("--replace-year", type=int, default=None)
    parser_upload.add_argument("--filename", default=None)
    parser_upload.add_argument("--admin", default=None, help="Identifier recorded in the audit log")
    parser_upload.set_defaults(func=command_upload)

    parser_export = subparsers.add_parser("export", help="Write a CSV extract of a stored table")
    _add_export_filters(parser_export)
    parser_export.add_argument("--xlsx", action="store_true", help="Also write an Excel workbook")
    parser_export.set_defaults(func=command_export)

    parser_count = subparsers.add_parser("count", help="Count the rows an export would include")
    _add_export_filters(parser_count)
    parser_count.set_defaults(func=command_count)

    parser_delete = subparsers.add_parser("delete-year", help="Delete one fiscal year from a table")
    parser_delete.add_argument("table")
    parser_delete.add_argument("fiscal_year", type=int)
    parser_delete.add_argument("--admin", default=None, help="Identifier recorded in the audit log")
    parser_delete.set_defaults(func=command_delete_year)

    parser_history = subparsers.add_parser("history", help="List recent uploads")
    parser_history.add_argument("--table", default=None)
    parser_history.add_argument("--limit", type=int, default=20)
    parser_history.set_defaults(func=command_history)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_environment()
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except (ValueError, SchemaError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover - entry point for CLI usage
    raise SystemExit(main())
