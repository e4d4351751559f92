"""Run context shared by the CiviPortal pipelines."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from civiportal.settings import Settings


@dataclass(slots=True)
class RunContext:
    """Context object passed to every upload or export run."""

    settings: Settings
    run_id: str
    timestamp: datetime
    workspace: Path
