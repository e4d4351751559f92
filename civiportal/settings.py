"""Environment-driven configuration for CiviPortal."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    data_dir: Path
    output_dir: Path
    sqlite_path: Path
    schema_config: Path | None
    max_upload_bytes: int
    max_records: int
    insert_chunk_size: int
    fiscal_start_month: int
    fiscal_start_day: int
    log_level: str
    export_max_rows: int = 50_000

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment variables with sensible defaults."""

        data_dir = Path(os.getenv("CIVIPORTAL_DATA_DIR", "data"))
        output_dir = Path(os.getenv("CIVIPORTAL_OUTPUT_DIR", "exports"))
        sqlite_path = Path(os.getenv("CIVIPORTAL_DB_PATH", "civiportal.sqlite"))
        schema_env = os.getenv("CIVIPORTAL_SCHEMA_CONFIG")
        max_upload_bytes = int(os.getenv("CIVIPORTAL_MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
        max_records = int(os.getenv("CIVIPORTAL_MAX_RECORDS", "250000"))
        insert_chunk_size = int(os.getenv("CIVIPORTAL_INSERT_CHUNK_SIZE", "5000"))
        fiscal_start_month = int(os.getenv("CIVIPORTAL_FISCAL_START_MONTH", "1"))
        fiscal_start_day = int(os.getenv("CIVIPORTAL_FISCAL_START_DAY", "1"))
        export_max_rows = int(os.getenv("CIVIPORTAL_EXPORT_MAX_ROWS", "50000"))
        log_level = os.getenv("LOG_LEVEL", "INFO")
        return cls(
            data_dir=data_dir,
            output_dir=output_dir,
            sqlite_path=sqlite_path,
            schema_config=Path(schema_env) if schema_env else None,
            max_upload_bytes=max_upload_bytes,
            max_records=max_records,
            insert_chunk_size=insert_chunk_size,
            fiscal_start_month=fiscal_start_month,
            fiscal_start_day=fiscal_start_day,
            log_level=log_level,
            export_max_rows=export_max_rows,
        )

    def ensure_directories(self) -> None:
        """Create directories required for the runtime to operate."""

        for path in {self.data_dir, self.output_dir, self.sqlite_path.parent}:
            if not path.exists():
                path.mkdir(parents=True, exist_ok=True)
