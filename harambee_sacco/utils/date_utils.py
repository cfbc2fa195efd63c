"""Date manipulation utilities"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an incoming (possibly tz-aware) datetime to naive UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """First and last instant of a calendar month"""
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime(year, month, last_day, 23, 59, 59, 999999)
    return start, end


def start_of_year(now: datetime) -> datetime:
    return datetime(now.year, 1, 1)


def format_date(value: Optional[datetime]) -> str:
    """YYYY-MM-DD or empty string"""
    if value is None:
        return ""
    return value.date().isoformat() if isinstance(value, datetime) else value.isoformat()


def today_iso() -> str:
    return utcnow().date().isoformat()


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days from earlier to later, floored (negative when later < earlier)"""
    return (later - earlier) // timedelta(days=1)


def days_before(moment: datetime, days: int) -> datetime:
    return moment - timedelta(days=days)
