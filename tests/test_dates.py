"""Local (UTC+5) day and month bucketing."""

from datetime import datetime, timezone

from utils.dates import (
    LOCAL_TZ,
    add_months,
    date_label,
    day_bounds,
    local_date_key,
    month_bounds,
    month_key,
    start_of_local_day,
    start_of_local_month,
    to_local_time,
    utc_months_between,
)


def test_day_boundary_is_19_utc(utc):
    assert local_date_key(utc(2024, 1, 15, 18, 59, 59)) == "2024-01-15"
    assert local_date_key(utc(2024, 1, 15, 19, 0, 0)) == "2024-01-16"


def test_naive_datetimes_are_utc():
    assert local_date_key(datetime(2024, 1, 15, 19, 0, 0)) == "2024-01-16"


def test_to_local_time_adds_five_hours(utc):
    local = to_local_time(utc(2024, 6, 1, 22, 30))
    assert (local.year, local.month, local.day, local.hour, local.minute) == (2024, 6, 2, 3, 30)
    assert local.utcoffset().total_seconds() == 5 * 3600


def test_start_of_local_day_is_the_same_instant_as_19_utc(utc):
    start = start_of_local_day(utc(2024, 1, 15, 10, 0))
    assert start == utc(2024, 1, 14, 19, 0)
    assert start.tzinfo == LOCAL_TZ


def test_start_of_local_month_after_utc_month_end(utc):
    # 20:00 UTC on Feb 29 is already 01:00 on Mar 1 locally
    assert start_of_local_month(utc(2024, 2, 29, 20, 0)) == utc(2024, 2, 29, 19, 0)
    assert month_key(utc(2024, 2, 29, 20, 0)) == "2024-03"


def test_day_bounds_span_one_local_day(utc):
    start, end = day_bounds(utc(2024, 1, 15, 18, 59, 59))
    assert start == utc(2024, 1, 14, 19, 0)
    assert end == utc(2024, 1, 15, 19, 0)


def test_month_bounds_cross_year():
    start, end = month_bounds("2025-12")
    assert start == datetime(2025, 11, 30, 19, 0, tzinfo=timezone.utc)
    assert end == datetime(2025, 12, 31, 19, 0, tzinfo=timezone.utc)


def test_add_months():
    assert add_months("2026-01", 1) == "2026-02"
    assert add_months("2026-01", -1) == "2025-12"
    assert add_months("2025-11", 14) == "2027-01"


def test_local_day_can_straddle_two_utc_months(utc):
    start, end = day_bounds(utc(2024, 3, 1, 6, 0))
    assert utc_months_between(start, end) == [(2024, 2), (2024, 3)]


def test_mid_month_day_touches_one_utc_month(utc):
    start, end = day_bounds(utc(2024, 3, 10, 6, 0))
    assert utc_months_between(start, end) == [(2024, 3)]


def test_date_label():
    assert date_label("2026-01-05") == "January 5, 2026"
    assert date_label("2026-01-05", short=True) == "Jan 5"
    assert date_label("not-a-date") == "not-a-date"
