# utils/dates.py
"""
Date/day/month utilities for the chess league bot.

All ranking and championship logic uses "local time": a fixed UTC+5 offset
(Tajikistan). The offset never changes, so we use a fixed ``timezone`` rather
than a tz database zone.

Naive datetimes passed into these helpers are treated as UTC.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Tuple

LOCAL_OFFSET = timedelta(hours=5)

# The canonical timezone for all league operations
LOCAL_TZ = timezone(LOCAL_OFFSET, "UTC+05:00")


def _aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_local_time(dt: datetime) -> datetime:
    """
    Return the same instant expressed on the local (UTC+5) wall clock.

    Args:
        dt: Any datetime (naive = UTC).

    Returns:
        Timezone-aware datetime in LOCAL_TZ.
    """
    return _aware(dt).astimezone(LOCAL_TZ)


def start_of_local_day(dt: datetime) -> datetime:
    """
    Return local midnight of the local day containing dt.

    The result is timezone-aware, so comparing it against UTC instants
    works directly (local midnight is 19:00 UTC of the previous day).
    """
    local = to_local_time(dt)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_local_month(dt: datetime) -> datetime:
    """Return local midnight on the 1st of the local month containing dt."""
    return start_of_local_day(dt).replace(day=1)


def local_date_key(dt: datetime) -> str:
    """
    Return the local calendar date of dt as 'YYYY-MM-DD'.

    Two instants fall on the same local day iff their keys are equal.
    This is also the primary key of a daily champion record.
    """
    local = to_local_time(dt)
    return f"{local.year:04d}-{local.month:02d}-{local.day:02d}"


def month_key(dt: datetime) -> str:
    """Return the local month of dt as 'YYYY-MM'."""
    local = to_local_time(dt)
    return f"{local.year:04d}-{local.month:02d}"


def add_months(mk: str, n: int) -> str:
    """
    Add (or subtract) n months from a month key.

    Examples:
        >>> add_months("2026-01", 1)
        '2026-02'
        >>> add_months("2026-01", -1)
        '2025-12'
    """
    y, m = mk.split("-")
    total = int(y) * 12 + (int(m) - 1) + n
    return f"{total // 12:04d}-{total % 12 + 1:02d}"


def day_bounds(dt: datetime) -> Tuple[datetime, datetime]:
    """Return (start, end_exclusive) of the local day containing dt."""
    start = start_of_local_day(dt)
    return start, start + timedelta(days=1)


def month_bounds(mk: str) -> Tuple[datetime, datetime]:
    """
    Return the start and end boundaries of a month in local time.

    Returns:
        Tuple of (start, end_exclusive); end_exclusive is local midnight on
        the 1st of the NEXT month.
    """
    y, m = mk.split("-")
    start = datetime(int(y), int(m), 1, tzinfo=LOCAL_TZ)

    y2, m2 = add_months(mk, 1).split("-")
    end = datetime(int(y2), int(m2), 1, tzinfo=LOCAL_TZ)
    return start, end


def utc_months_between(start: datetime, end: datetime) -> list[Tuple[int, int]]:
    """
    Return every (year, month) in UTC touched by [start, end).

    Chess.com archives are bucketed by UTC month, so a local day or month
    can straddle two archives.
    """
    s = _aware(start).astimezone(timezone.utc)
    e = _aware(end).astimezone(timezone.utc) - timedelta(microseconds=1)
    if e < s:
        e = s

    out: list[Tuple[int, int]] = []
    y, m = s.year, s.month
    while (y, m) <= (e.year, e.month):
        out.append((y, m))
        m += 1
        if m > 12:
            y, m = y + 1, 1
    return out


def date_label(date_key: str, *, short: bool = False) -> str:
    """'2026-01-05' -> 'January 5, 2026' (or 'Jan 5' when short)."""
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_key or ""):
        return date_key
    y, m, d = (int(x) for x in date_key.split("-"))
    dt = datetime(y, m, d, tzinfo=LOCAL_TZ)
    if short:
        return f"{dt.strftime('%b')} {d}"
    return f"{dt.strftime('%B')} {d}, {y}"


def now_local() -> datetime:
    """Return the current datetime in local time."""
    return datetime.now(LOCAL_TZ)
