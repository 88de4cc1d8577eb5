from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from entitlement_api.core.dates import (
    add_months,
    at_reference_time,
    ensure_utc,
    is_same_day_and_minute,
    is_same_instant,
    minute_of_day,
)


def test_naive_values_are_read_as_utc() -> None:
    naive = datetime(2026, 3, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    offset = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(offset) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_exact_and_minute_equality_differ_on_seconds() -> None:
    scheduled = datetime(2026, 3, 1, 12, 30, 0, tzinfo=timezone.utc)
    fired = scheduled + timedelta(seconds=17, microseconds=250)

    assert not is_same_instant(scheduled, fired)
    assert is_same_day_and_minute(scheduled, fired)
    assert not is_same_day_and_minute(scheduled, scheduled + timedelta(minutes=1))
    assert not is_same_day_and_minute(scheduled, scheduled + timedelta(days=1))


def test_minute_equality_compares_in_utc() -> None:
    utc_value = datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)
    shifted = datetime(2026, 3, 2, 1, 30, tzinfo=timezone(timedelta(hours=2)))

    assert is_same_instant(utc_value, shifted)
    assert is_same_day_and_minute(utc_value, shifted)
    assert minute_of_day(shifted) == 23 * 60 + 30


def test_none_only_equals_none() -> None:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert is_same_instant(None, None)
    assert is_same_day_and_minute(None, None)
    assert not is_same_instant(now, None)
    assert not is_same_day_and_minute(None, now)


def test_at_reference_time_keeps_time_of_day() -> None:
    reference = datetime(2026, 1, 15, 8, 45, 12, tzinfo=timezone.utc)
    assert at_reference_time(date(2026, 4, 2), reference) == datetime(2026, 4, 2, 8, 45, 12, tzinfo=timezone.utc)


def test_add_months_clamps_to_month_end() -> None:
    start = datetime(2026, 1, 31, 10, 0, tzinfo=timezone.utc)
    assert add_months(start, 1) == datetime(2026, 2, 28, 10, 0, tzinfo=timezone.utc)
    assert add_months(start, 13) == datetime(2027, 2, 28, 10, 0, tzinfo=timezone.utc)
