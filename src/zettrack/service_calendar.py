"""Service calendar resolution (calendar.txt + calendar_dates.txt)."""

from datetime import date, datetime
from typing import Union

from .models import ExceptionType
from .schedule import ScheduleIndex


def service_date(day: Union[date, datetime]) -> int:
    """Return a date as a YYYYMMDD integer."""
    return day.year * 10000 + day.month * 100 + day.day


def weekday_index(day: Union[date, datetime]) -> int:
    """Monday = 0 ... Sunday = 6."""
    return day.weekday()


def is_service_active(index: ScheduleIndex, service_id: str, yyyymmdd: int, weekday: int) -> bool:
    """
    Check whether a service operates on a date.

    The weekly pattern applies inside its inclusive date range. Every
    calendar_dates exception for that exact date is then applied in source
    order, so with duplicates for the same date the last one wins.

    Args:
        index: Loaded schedule.
        service_id: service_id from trips.txt.
        yyyymmdd: Date as an 8-digit integer.
        weekday: Monday = 0 ... Sunday = 6.

    Returns:
        True if the service runs that day.
    """
    active = False

    calendar = index.calendar_by_service.get(service_id)
    if calendar is not None and calendar.start_date <= yyyymmdd <= calendar.end_date:
        active = calendar.weekdays[weekday]

    for exception in index.exceptions_by_service.get(service_id, ()):
        if exception.date != yyyymmdd:
            continue
        if exception.exception_type == ExceptionType.ADDED:
            active = True
        elif exception.exception_type == ExceptionType.REMOVED:
            active = False

    return active
