# workscore/utils/dates.py
from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple, Union

from workscore.exceptions import InvalidWeekError


def utcnow() -> datetime:
    """Naive UTC now; every timestamp column is stored naive in UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_bounds(value: Union[date, datetime]) -> Tuple[date, date]:
    """Monday and Sunday of the calendar week containing `value`."""
    day = to_date(value)
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def require_calendar_week(week_start: date, week_end: date) -> None:
    if week_start.weekday() != 0:
        raise InvalidWeekError(f"week_start {week_start} is not a Monday")
    if week_end - week_start != timedelta(days=6):
        raise InvalidWeekError(f"{week_start}..{week_end} is not a Monday-Sunday week")


def window_datetimes(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive datetime range covering whole days `start`..`end`."""
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def iso_week_key(day: date) -> Tuple[int, int]:
    iso = day.isocalendar()
    return iso[0], iso[1]
