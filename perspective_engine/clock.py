"""Time helpers shared by the evaluators."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so they compare against aware instants."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def local_time_of_day(now: datetime, tz: tzinfo) -> time:
    return ensure_aware(now).astimezone(tz).time().replace(tzinfo=None)


def start_of_local_day(now: datetime, tz: tzinfo) -> datetime:
    local = ensure_aware(now).astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_local_day(now: datetime, tz: tzinfo) -> datetime:
    """Last representable instant of the local day containing ``now``."""

    return start_of_local_day(now, tz) + timedelta(days=1, microseconds=-1)


def same_local_day(left: datetime, right: datetime, tz: tzinfo) -> bool:
    return ensure_aware(left).astimezone(tz).date() == ensure_aware(right).astimezone(tz).date()
