# -*- coding: utf-8 -*-
"""Cadence window arithmetic.

All timestamps are naive UTC datetimes. Boundaries are aligned to the start
of the hour, midnight, Monday midnight, or the first day of the month.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from driftwatch.monitoring.types import AlertCadence

Window = Tuple[datetime, datetime]

_FIXED_STEPS = {
    AlertCadence.HOURLY: timedelta(hours=1),
    AlertCadence.DAILY: timedelta(days=1),
    AlertCadence.WEEKLY: timedelta(days=7),
}


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def floor_to_boundary(ts: datetime, cadence: AlertCadence) -> datetime:
    """Rounds a timestamp down to the start of its cadence window."""
    ts = to_naive_utc(ts)
    hour = ts.replace(minute=0, second=0, microsecond=0)
    if cadence is AlertCadence.HOURLY:
        return hour
    day = hour.replace(hour=0)
    if cadence is AlertCadence.DAILY:
        return day
    if cadence is AlertCadence.WEEKLY:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def next_boundary(boundary: datetime, cadence: AlertCadence) -> datetime:
    """The boundary one cadence step after `boundary`."""
    if cadence in _FIXED_STEPS:
        return boundary + _FIXED_STEPS[cadence]
    if boundary.month == 12:
        return boundary.replace(year=boundary.year + 1, month=1)
    return boundary.replace(month=boundary.month + 1)


def previous_boundary(boundary: datetime, cadence: AlertCadence) -> datetime:
    """The boundary one cadence step before `boundary`."""
    if cadence in _FIXED_STEPS:
        return boundary - _FIXED_STEPS[cadence]
    if boundary.month == 1:
        return boundary.replace(year=boundary.year - 1, month=12)
    return boundary.replace(month=boundary.month - 1)


def completed_windows(pointer: datetime, now: datetime, cadence: AlertCadence) -> int:
    """Number of whole windows that ended in (pointer, now]."""
    count = 0
    boundary = next_boundary(pointer, cadence)
    while boundary <= now:
        count += 1
        boundary = next_boundary(boundary, cadence)
    return count


def latest_completed_window(
    pointer: datetime,
    now: datetime,
    cadence: AlertCadence,
) -> Optional[Window]:
    """The most recently completed window after `pointer`, or None.

    Missed windows are not replayed: only the newest one is returned.
    """
    now = to_naive_utc(now)
    boundary = pointer
    upcoming = next_boundary(boundary, cadence)
    while upcoming <= now:
        boundary = upcoming
        upcoming = next_boundary(boundary, cadence)
    if boundary == pointer:
        return None
    return previous_boundary(boundary, cadence), boundary
