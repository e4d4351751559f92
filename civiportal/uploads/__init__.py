"""Validation and storage of uploaded finance CSV files."""
from __future__ import annotations

from .fiscal import FiscalConfig, compute_fiscal_period, compute_fiscal_year, normalize_record
from .pipeline import UploadRequest, UploadResult, delete_fiscal_year, read_upload, run_upload
from .schemas import DEFAULT_SCHEMAS, SchemaError, TableSchema, get_schema, load_schemas
from .storage import DELETE_YEAR, MODES, UploadRecord, UploadStore
from .validation import UploadPreview, UploadValidationError, build_records, preview

__all__ = [
    "DEFAULT_SCHEMAS",
    "DELETE_YEAR",
    "FiscalConfig",
    "MODES",
    "SchemaError",
    "TableSchema",
    "UploadPreview",
    "UploadRecord",
    "UploadRequest",
    "UploadResult",
    "UploadStore",
    "UploadValidationError",
    "build_records",
    "compute_fiscal_period",
    "compute_fiscal_year",
    "delete_fiscal_year",
    "get_schema",
    "load_schemas",
    "normalize_record",
    "preview",
    "read_upload",
    "run_upload",
]
