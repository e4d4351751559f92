"""Fiscal year and fiscal period derivation for uploaded records."""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Mapping

_PERIOD = re.compile(r"^(\d{4})[-/](\d{1,2})$")
_INT64_MAX = 2 ** 63 - 1


@dataclass(slots=True, frozen=True)
class FiscalConfig:
    """First month and day of the fiscal year."""

    start_month: int = 1
    start_day: int = 1

    @classmethod
    def from_values(cls, month: object, day: object) -> "FiscalConfig":
        """Build a config, falling back to January 1st for invalid parts."""

        return cls(
            start_month=_bounded(month, 12),
            start_day=_bounded(day, 31),
        )


def _bounded(value: object, upper: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1
    return number if 1 <= number <= upper else 1


def parse_date(value: object) -> date | None:
    """Parse ISO dates/datetimes and ``MM/DD/YYYY``; ``None`` when unparseable."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%m/%d/%Y").date()
    except ValueError:
        return None


def compute_fiscal_year(value: object, config: FiscalConfig) -> int | None:
    """Return the fiscal year a date falls in.

    Fiscal years are named by the calendar year they end in. With a July 1
    start, 2024-06-30 is FY2024 and 2024-07-01 is FY2025; with a January 1
    start the fiscal year is the calendar year.
    """

    parsed = parse_date(value)
    if parsed is None:
        return None
    if config.start_month == 1 and config.start_day == 1:
        return parsed.year
    after_start = parsed.month > config.start_month or (
        parsed.month == config.start_month and parsed.day >= config.start_day
    )
    return parsed.year + 1 if after_start else parsed.year


def compute_fiscal_period(value: object, config: FiscalConfig) -> int | None:
    """Return the 1-12 fiscal month a date falls in."""

    parsed = parse_date(value)
    if parsed is None:
        return None
    month = parsed.month
    if config.start_day > 1 and parsed.day < config.start_day:
        month = 12 if month == 1 else month - 1
    return (month - config.start_month + 12) % 12 + 1


def normalize_period(value: object) -> str | None:
    """Return ``YYYY-MM`` for ``YYYY-M``/``YYYY/MM`` strings."""

    if not isinstance(value, str):
        return None
    match = _PERIOD.match(value.strip())
    if not match:
        return None
    return f"{match.group(1)}-{int(match.group(2)):02d}"


def derive_date_from_period(period: object, start_day: int) -> str | None:
    """Turn a ``YYYY-MM`` period into an ISO date on *start_day* of that month."""

    if not isinstance(period, str):
        return None
    match = _PERIOD.match(period.strip())
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    last_day = calendar.monthrange(year, month)[1]
    day = min(max(1, start_day or 1), last_day)
    return f"{year:04d}-{month:02d}-{day:02d}"


def _integral(number: float) -> bool:
    return number.is_integer() and abs(number) <= _INT64_MAX


def _as_int(value: object) -> object:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and _integral(value):
        return int(value)
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return value
        if _integral(number):
            return int(number)
    return value


def normalize_record(
    record: Mapping[str, object], table: str, config: FiscalConfig
) -> Dict[str, object]:
    """Return a copy of *record* with fiscal_year/fiscal_period resolved for *table*."""

    normalized = dict(record)
    if normalized.get("fiscal_year") not in (None, ""):
        normalized["fiscal_year"] = _as_int(normalized["fiscal_year"])

    if table == "transactions":
        # Stored dates are ISO so that date-range filters compare as text.
        parsed = parse_date(normalized.get("date"))
        if parsed is not None:
            normalized["date"] = parsed.isoformat()
            normalized["fiscal_year"] = compute_fiscal_year(parsed, config)
            normalized["fiscal_period"] = compute_fiscal_period(parsed, config)
        return normalized

    if table in {"actuals", "revenues"}:
        period = normalize_period(normalized.get("period"))
        if period is not None:
            normalized["period"] = period
        raw_date = normalized.get("date")
        candidate = (
            raw_date
            if isinstance(raw_date, str) and raw_date.strip()
            else derive_date_from_period(normalized.get("period"), config.start_day)
        )
        if candidate:
            fiscal_year = compute_fiscal_year(candidate, config)
            fiscal_period = compute_fiscal_period(candidate, config)
            if fiscal_year is not None:
                normalized["fiscal_year"] = fiscal_year
            if fiscal_period is not None:
                normalized["fiscal_period"] = fiscal_period
            return normalized
        if normalized.get("fiscal_period") not in (None, ""):
            normalized["fiscal_period"] = _as_int(normalized["fiscal_period"])
    return normalized


__all__ = [
    "FiscalConfig",
    "compute_fiscal_period",
    "compute_fiscal_year",
    "derive_date_from_period",
    "normalize_period",
    "normalize_record",
    "parse_date",
]
