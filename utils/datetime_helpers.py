"""Timezone-aware date/time helpers for the tray booking service."""

import calendar
from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Asia/Kolkata')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return datetime.now(get_timezone()).date()


def get_now() -> datetime:
    """Get current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def parse_date(value) -> date:
    """
    Coerce a date, datetime or 'YYYY-MM-DD' string to a date.

    Args:
        value: date, datetime or ISO date string

    Returns:
        date object

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), '%Y-%m-%d').date()
        except ValueError:
            raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    raise ValueError(f"Invalid date: {value!r}")


def add_months(start: date, months: int) -> date:
    """
    Add calendar months, clamping to the last day of the target month.

    Args:
        start: Starting date
        months: Months to add

    Returns:
        Shifted date (e.g. Aug 31 + 6 months = Feb 28/29)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
