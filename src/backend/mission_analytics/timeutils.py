"""
Calendar bucketing helpers.

Timestamps arrive as integer nanoseconds. They are truncated to milliseconds,
placed in the configured timezone and, from then on, only their local calendar
day matters. Every helper here is pure.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterator, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DateLike = Union[date, datetime]

NANOS_PER_MILLI = 1_000_000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UTC = ZoneInfo("UTC")


def coerce_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    if tz is None:
        return _UTC
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return _UTC


def normalize_datetime(dt: datetime, tz: tzinfo) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def nanos_to_date(nanos: int, tz: Optional[tzinfo] = None) -> datetime:
    """Truncate ``nanos`` to whole milliseconds and return an aware datetime in ``tz``."""

    millis = nanos // NANOS_PER_MILLI
    return (_EPOCH + timedelta(milliseconds=millis)).astimezone(coerce_timezone(tz))


def nanos_to_day(nanos: int, tz: Optional[tzinfo] = None) -> date:
    return nanos_to_date(nanos, tz).date()


def to_local_day(value: DateLike, tz: Optional[tzinfo] = None) -> date:
    # datetime subclasses date, so check it first
    if isinstance(value, datetime):
        return normalize_datetime(value, coerce_timezone(tz)).date()
    return value


def day_key(value: DateLike, tz: Optional[tzinfo] = None) -> str:
    return to_local_day(value, tz).isoformat()


def start_of_week(value: DateLike, tz: Optional[tzinfo] = None) -> date:
    """Monday of the ISO week containing ``value``. Sundays step back six days."""

    day = to_local_day(value, tz)
    return day - timedelta(days=day.weekday())


def day_range(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end``, both inclusive."""

    cursor = start
    while cursor <= end:
        yield cursor
        cursor += timedelta(days=1)


def trailing_window(reference: DateLike, days: int, tz: Optional[tzinfo] = None) -> Tuple[date, date]:
    """Inclusive ``days``-long window of calendar days ending on ``reference``."""

    end = to_local_day(reference, tz)
    return end - timedelta(days=days - 1), end
