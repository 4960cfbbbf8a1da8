"""
Date/Time Handling Utilities

All timestamps are stored as timezone-aware UTC datetimes. Streaks are counted
in calendar days of a single configured timezone (DAY_BOUNDARY_TIMEZONE), so two
completions on the same local date are the same day regardless of clock time.

Naive datetimes are interpreted as UTC.
"""

import logging
from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from impulse.config import DAY_BOUNDARY_TIMEZONE

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


def get_day_boundary_timezone(tz_name: Optional[str] = None) -> ZoneInfo:
    """Return the timezone used to cut calendar days"""
    tz_str = tz_name or DAY_BOUNDARY_TIMEZONE or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(tz_str)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Invalid day boundary timezone '{tz_str}': {e}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def now_utc() -> datetime:
    """Current datetime in UTC (timezone-aware)"""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC; naive values are taken as UTC already"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def calendar_date(moment: Union[datetime, date], tz: Optional[ZoneInfo] = None) -> date:
    """
    Calendar date of a moment in the day boundary timezone

    Args:
        moment: datetime (aware or naive UTC) or an already-resolved date
        tz: Override timezone (defaults to DAY_BOUNDARY_TIMEZONE)

    Returns:
        The local calendar date
    """
    if not isinstance(moment, datetime):
        return moment
    tz = tz or get_day_boundary_timezone()
    return to_utc(moment).astimezone(tz).date()


def is_same_day(a: datetime, b: datetime, tz: Optional[ZoneInfo] = None) -> bool:
    """Check whether two moments fall on the same calendar date"""
    return calendar_date(a, tz) == calendar_date(b, tz)


def days_between(earlier: datetime, later: datetime, tz: Optional[ZoneInfo] = None) -> int:
    """Signed number of calendar days from earlier to later"""
    return (calendar_date(later, tz) - calendar_date(earlier, tz)).days


def window_start(now: datetime, days: int) -> datetime:
    """UTC instant `days` days before now (trailing window start)"""
    return to_utc(now) - timedelta(days=days)
