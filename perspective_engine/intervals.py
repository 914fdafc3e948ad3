"""Review and repeat interval strings such as ``3d``, ``1w``, ``2m`` or ``1y``."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

_INTERVAL_RE = re.compile(r"^(\d+)([dwmy])$")
_UNIT_NAMES = {"d": "day", "w": "week", "m": "month", "y": "year"}


@dataclass(frozen=True)
class Interval:
    value: int
    unit: str


def parse_interval(text: str) -> Interval:
    """Parse an interval string, raising ValueError on anything else."""

    match = _INTERVAL_RE.match(str(text).strip())
    if not match:
        raise ValueError(f"Invalid interval format: {text!r}")
    return Interval(value=int(match.group(1)), unit=match.group(2))


def _add_months(instant: datetime, months: int) -> datetime:
    month_index = instant.month - 1 + months
    year = instant.year + month_index // 12
    month = month_index % 12 + 1
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


def add_interval(instant: datetime, interval: Interval) -> datetime:
    """Return ``instant`` advanced by ``interval``; month ends are clamped."""

    if interval.unit == "d":
        return instant + timedelta(days=interval.value)
    if interval.unit == "w":
        return instant + timedelta(weeks=interval.value)
    if interval.unit == "m":
        return _add_months(instant, interval.value)
    return _add_months(instant, 12 * interval.value)


def format_interval(interval: Interval) -> str:
    unit = _UNIT_NAMES[interval.unit]
    return f"{interval.value} {unit}{'s' if interval.value > 1 else ''}"
