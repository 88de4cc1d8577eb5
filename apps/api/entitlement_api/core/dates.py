"""Timestamp helpers shared by the timeline and the blocking-state engine.

Every effective timestamp handled by the service is a timezone-aware UTC
``datetime``. Databases without timezone support (SQLite in tests) hand back
naive values, which are interpreted as UTC.

Two equality notions are exposed:

* ``is_same_instant`` - exact equality. Used where the caller supplies the
  authoritative time (the write path stores exactly the effective time it was
  given, and read-path projections carry the transition time verbatim).
* ``is_same_day_and_minute`` - calendar day plus minute-of-day equality. Used
  where a time was computed in one place and observed in another after
  asynchronous scheduling (matching a fired notification to the transition
  that produced it, comparing a recorded block to an immediate action time).
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minute_of_day(value: datetime) -> int:
    value = ensure_utc(value)
    return value.hour * 60 + value.minute


def is_same_instant(left: datetime | None, right: datetime | None) -> bool:
    if left is None or right is None:
        return left is right
    return ensure_utc(left) == ensure_utc(right)


def is_same_day_and_minute(left: datetime | None, right: datetime | None) -> bool:
    if left is None or right is None:
        return left is right
    left, right = ensure_utc(left), ensure_utc(right)
    return left.date() == right.date() and minute_of_day(left) == minute_of_day(right)


def at_reference_time(day: date, reference: datetime) -> datetime:
    """Place a calendar day at the time of day of ``reference`` (UTC)."""
    reference = ensure_utc(reference)
    return datetime.combine(day, time(reference.hour, reference.minute, reference.second, reference.microsecond), tzinfo=timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
