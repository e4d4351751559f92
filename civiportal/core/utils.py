"""Miscellaneous helpers for the CiviPortal runtime."""
from __future__ import annotations

from importlib import metadata

__all__ = ["package_version"]


def package_version() -> str:
    """Return the installed CiviPortal package version or a sensible default."""

    try:
        return metadata.version("civiportal")
    except metadata.PackageNotFoundError:  # pragma: no cover - fallback path
        return "0.0.0"
