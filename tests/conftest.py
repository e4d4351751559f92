from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from civiportal.core.context import RunContext
from civiportal.settings import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory."""

    settings = Settings(
        data_dir=tmp_path / "data",
        output_dir=tmp_path / "exports",
        sqlite_path=tmp_path / "civiportal.sqlite",
        schema_config=None,
        max_upload_bytes=1024 * 1024,
        max_records=1000,
        insert_chunk_size=2,
        fiscal_start_month=1,
        fiscal_start_day=1,
        log_level="INFO",
    )
    settings.ensure_directories()
    return settings


@pytest.fixture
def run_context(settings: Settings, tmp_path: Path) -> RunContext:
    """Create a temporary run context for tests."""

    return RunContext(
        settings=settings,
        run_id="test-run",
        timestamp=datetime(2024, 1, 1, 12, 0, 0),
        workspace=tmp_path,
    )


@pytest.fixture
def write_csv(tmp_path: Path):
    """Write CSV text to a file under ``tmp_path`` and return its path."""

    def _write(name: str, text: str, encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_bytes(text.encode(encoding))
        return path

    return _write
