"""Upload pipeline: file on disk to validated rows in the local store."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping

from civiportal.core.context import RunContext
from civiportal.tabular import parse_csv_with_headers

from .fiscal import FiscalConfig, normalize_record
from .schemas import TableSchema, get_schema, load_schemas
from .storage import MODES, UploadStore
from .validation import UploadValidationError, build_records

logger = logging.getLogger(__name__)

_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


@dataclass(slots=True)
class UploadRequest:
    """What to do with an uploaded file."""

    table: str
    mode: str = "append"
    replace_year: int | None = None
    filename: str | None = None
    admin_identifier: str | None = None


@dataclass(slots=True)
class UploadResult:
    table: str
    mode: str
    row_count: int
    fiscal_years: List[int] = field(default_factory=list)
    upload_id: int | None = None
    message: str = ""


def read_upload(path: Path, *, max_bytes: int) -> str:
    """Read *path* as text, rejecting missing or oversized files."""

    if not path.exists():
        raise UploadValidationError(f"Upload file not found: {path}")
    size = path.stat().st_size
    if size > max_bytes:
        raise UploadValidationError(
            f"Upload too large ({size} bytes). The limit is {max_bytes} bytes."
        )
    payload = path.read_bytes()
    for encoding in _ENCODINGS:
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError:
            logger.debug("Could not decode %s as %s", path.name, encoding)
    # latin-1 maps every byte, so the loop always returns.
    raise UploadValidationError(f"Unable to decode {path.name}")  # pragma: no cover


def _fiscal_years(records: List[Dict[str, object]]) -> List[int]:
    years = set()
    for record in records:
        value = record.get("fiscal_year")
        if isinstance(value, int) and not isinstance(value, bool):
            years.add(value)
        elif isinstance(value, float) and value.is_integer():
            years.add(int(value))
    return sorted(years, reverse=True)


def _check_replace_year(requested: int, years: List[int]) -> None:
    if not years:
        raise UploadValidationError(
            "No fiscal years were detected in the uploaded data after normalization. "
            "For replace_year mode, rows must resolve to a single fiscal_year."
        )
    if len(years) > 1:
        raise UploadValidationError(
            "Multiple fiscal years detected in uploaded data after normalization "
            f"({', '.join(str(year) for year in years)}). For replace_year mode, "
            "the file must resolve to a single fiscal year."
        )
    if years[0] != requested:
        raise UploadValidationError(
            f"Fiscal year mismatch. You requested replace_year for FY {requested}, "
            f"but the uploaded data resolves to FY {years[0]}."
        )


def _describe(request: UploadRequest, schema: TableSchema, count: int) -> str:
    if request.mode == "append":
        action = "appended"
    elif request.mode == "replace_year":
        action = f"replaced fiscal year {request.replace_year} in"
    else:
        action = "replaced all rows in"
    return f'Successfully {action} "{schema.name}" with {count} record(s).'


def run_upload(
    context: RunContext,
    path: Path,
    request: UploadRequest,
    schemas: Mapping[str, TableSchema] | None = None,
) -> UploadResult:
    """Validate the CSV at *path* and store it according to *request*."""

    settings = context.settings
    schemas = schemas if schemas is not None else load_schemas(settings.schema_config)
    schema = get_schema(request.table, schemas)
    if request.mode not in MODES:
        raise UploadValidationError(f"Invalid upload mode '{request.mode}'")
    if request.mode == "replace_year" and request.replace_year is None:
        raise UploadValidationError("replaceYear is required for replace_year mode")

    logger.info(
        "Processing %s upload of %s into %s (run_id=%s)",
        request.mode,
        path.name,
        schema.name,
        context.run_id,
    )
    text = read_upload(path, max_bytes=settings.max_upload_bytes)
    table = parse_csv_with_headers(text)
    if table.row_count > settings.max_records:
        raise UploadValidationError(
            f"Upload too large. This tool currently supports up to {settings.max_records} "
            "rows per upload. Please split your file and try again."
        )
    records = build_records(table, schema)

    fiscal_config = FiscalConfig.from_values(settings.fiscal_start_month, settings.fiscal_start_day)
    records = [normalize_record(record, schema.name, fiscal_config) for record in records]
    years = _fiscal_years(records)
    if request.mode == "replace_year":
        _check_replace_year(int(request.replace_year), years)
        audit_year = request.replace_year
    else:
        audit_year = years[0] if len(years) == 1 else None
    store = UploadStore(settings.sqlite_path, schemas, chunk_size=settings.insert_chunk_size)
    try:
        inserted, upload_id = store.store_upload(
            schema.name,
            request.mode,
            records,
            replace_year=request.replace_year,
            fiscal_year=audit_year,
            filename=request.filename or path.name,
            admin_identifier=request.admin_identifier,
        )
    except Exception:
        logger.exception("Failed to store upload of %s into %s", path.name, schema.name)
        raise

    message = _describe(request, schema, inserted)
    logger.info("%s Fiscal years: %s", message, years or "none")
    return UploadResult(
        table=schema.name,
        mode=request.mode,
        row_count=inserted,
        fiscal_years=years,
        upload_id=upload_id,
        message=message,
    )


def delete_fiscal_year(
    context: RunContext,
    table: str,
    fiscal_year: object,
    *,
    admin_identifier: str | None = None,
    schemas: Mapping[str, TableSchema] | None = None,
) -> int:
    """Remove one fiscal year of *table* from the store and return the row count."""

    settings = context.settings
    schemas = schemas if schemas is not None else load_schemas(settings.schema_config)
    store = UploadStore(settings.sqlite_path, schemas)
    deleted = store.delete_year(table, fiscal_year, admin_identifier=admin_identifier)
    logger.info(
        "Deleted FY%s from %s. Rows deleted: %d. (run_id=%s)",
        fiscal_year,
        table,
        deleted,
        context.run_id,
    )
    return deleted


__all__ = ["UploadRequest", "UploadResult", "delete_fiscal_year", "read_upload", "run_upload"]
