"""CiviPortal data exports."""
from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from civiportal.core.context import RunContext
from civiportal.uploads.schemas import load_schemas

from .generators import EXPORT_ORDER, MAX_ROWS, ExportGenerator, ExportSummary, build_filename

logger = logging.getLogger(__name__)


def _generator(context: RunContext) -> ExportGenerator:
    settings = context.settings
    return ExportGenerator(
        settings.sqlite_path,
        settings.output_dir,
        load_schemas(settings.schema_config),
        max_rows=settings.export_max_rows,
    )


def count_export(
    context: RunContext,
    table: str,
    *,
    years: Sequence[int] | None = None,
    departments: Sequence[str] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> int:
    """Return how many stored rows an export with these filters would include."""

    return _generator(context).count(
        table,
        years=years,
        departments=departments,
        start_date=start_date,
        end_date=end_date,
    )


def run_export(
    context: RunContext,
    table: str,
    *,
    years: Sequence[int] | None = None,
    departments: Sequence[str] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    workbook: bool = False,
) -> ExportSummary:
    """Produce CSV (and optionally Excel) extracts of a stored table."""

    summary = _generator(context).generate(
        table,
        years=years,
        departments=departments,
        start_date=start_date,
        end_date=end_date,
        workbook=workbook,
        today=context.timestamp.date(),
    )
    if summary.rows == 0:
        logger.warning(
            "No %s rows matched the export filters in run %s; wrote headers only.",
            table,
            context.run_id,
        )
    else:
        logger.info("Exported %d %s row(s) for run %s.", summary.rows, table, context.run_id)
    if summary.truncated:
        logger.warning(
            "Export of %s stopped at %d of %d matching rows; narrow the filters for a full extract.",
            table,
            summary.rows,
            summary.matched,
        )
    for artifact in summary.files:
        logger.info("Export artifact written to %s", artifact)
    return summary


__all__ = [
    "EXPORT_ORDER",
    "MAX_ROWS",
    "ExportGenerator",
    "ExportSummary",
    "build_filename",
    "count_export",
    "run_export",
]
