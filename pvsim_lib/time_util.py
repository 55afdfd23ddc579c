from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pvsim_lib.constants import HOURS_IN_DAY, MINUTES_IN_HOUR, SECONDS_IN_HOUR


def hour_of_day(ts: datetime) -> float:
    """Fractional hour of *ts* on its own wall clock (minutes included, seconds ignored)."""
    return (ts.hour % HOURS_IN_DAY) + ts.minute / MINUTES_IN_HOUR


def site_zone(tz_name: Optional[str]) -> Optional[ZoneInfo]:
    """Resolve an IANA timezone name, or ``None`` for server-local time."""
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Return the current wall-clock time at the site as a timezone-naive datetime."""
    zone = site_zone(tz_name)
    if zone is None:
        return datetime.now()
    return datetime.now(zone).replace(tzinfo=None)


def date_to_datetime(d: date) -> datetime:
    """Return midnight for *d* as a timezone-naive datetime."""
    return datetime.combine(d, time.min)


def start_of_today(tz_name: Optional[str] = None) -> datetime:
    return date_to_datetime(local_now(tz_name).date())


def seed_timestamps(base: datetime, points: int) -> list[datetime]:
    """Return *points* timestamps spread evenly over the 24 hours after *base*.

    Offsets are rounded to the millisecond so the schedule is a pure function
    of ``base`` and ``points``.
    """
    if points <= 0:
        raise ValueError("points must be positive")
    step_hours = HOURS_IN_DAY / points
    return [
        base + timedelta(milliseconds=round(i * step_hours * SECONDS_IN_HOUR * 1000))
        for i in range(points)
    ]


def to_naive_local(ts: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to server-local naive time; pass naive values through."""
    if ts is None or ts.tzinfo is None:
        return ts
    return ts.astimezone().replace(tzinfo=None)
