"""Core runtime primitives for CiviPortal."""
from __future__ import annotations

from .context import RunContext
from .utils import package_version

__all__ = ["RunContext", "package_version"]
