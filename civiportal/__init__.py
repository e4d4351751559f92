"""CiviPortal - financial transparency data tooling for local governments."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

from civiportal.core import RunContext
from civiportal.settings import Settings
from civiportal.tabular import HeaderedTable, parse_csv, parse_csv_with_headers

__all__ = [
    "__version__",
    "HeaderedTable",
    "RunContext",
    "Settings",
    "create_default_context",
    "parse_csv",
    "parse_csv_with_headers",
]


def __getattr__(name: str):  # pragma: no cover - passthrough to package metadata
    if name == "__version__":
        from civiportal.core import package_version

        return package_version()
    raise AttributeError(name)


def create_default_context(settings: Settings | None = None) -> RunContext:
    """Construct a default :class:`RunContext` for command-line runs."""

    settings = settings or Settings.load()
    settings.ensure_directories()
    timestamp = datetime.utcnow()
    return RunContext(
        settings=settings,
        run_id=timestamp.strftime("%Y%m%d%H%M%S"),
        timestamp=timestamp,
        workspace=Path.cwd(),
    )
