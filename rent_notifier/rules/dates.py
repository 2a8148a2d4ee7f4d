"""Due-day date arithmetic.

Pure functions over (due_day, today). A due day past the end of a month
is clamped to that month's last day, so due day 31 falls on Feb 28/29,
Apr 30 and so on.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

import calendar
from datetime import date

from rent_notifier.core.exceptions import ConfigurationInvalidError


def _check_due_day(due_day: int) -> None:
    if not 1 <= due_day <= 31:
        raise ConfigurationInvalidError(f"Due day must be between 1 and 31, got {due_day}", field="due_day")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Return (year, month) moved by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def clamp_due_date(year: int, month: int, due_day: int) -> date:
    """Due date for a given month, clamped to the month's last day."""
    _check_due_day(due_day)
    return date(year, month, min(due_day, days_in_month(year, month)))


def next_due_date(due_day: int, today: date) -> date:
    """First due date on or after today."""
    candidate = clamp_due_date(today.year, today.month, due_day)
    if candidate < today:
        candidate = clamp_due_date(*shift_month(today.year, today.month, 1), due_day)
    return candidate


def last_due_date(due_day: int, today: date) -> date:
    """Most recent due date on or before today."""
    candidate = clamp_due_date(today.year, today.month, due_day)
    if candidate > today:
        candidate = clamp_due_date(*shift_month(today.year, today.month, -1), due_day)
    return candidate


def days_until_due(due_day: int, today: date) -> int:
    """Days from today to the next due date.

    0 on the due day itself, never negative, at most 31.

    Example:
        >>> days_until_due(10, date(2026, 3, 7))
        3
        >>> days_until_due(10, date(2026, 3, 11))
        30
    """
    return (next_due_date(due_day, today) - today).days


def days_since_due(due_day: int, today: date) -> int:
    """Days elapsed since the most recent due date.

    0 means due today (not yet overdue). When this month's due date is
    still ahead, the count runs from last month's (clamped) due date.

    Example:
        >>> days_since_due(10, date(2026, 3, 12))
        2
        >>> days_since_due(28, date(2026, 3, 2))
        2
    """
    return (today - last_due_date(due_day, today)).days


def format_year_month(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def previous_year_month(today: date) -> str:
    """Return the YYYY-MM key of the calendar month before today's."""
    year, month = shift_month(today.year, today.month, -1)
    return f"{year:04d}-{month:02d}"


def parse_year_month(year_month: str) -> date:
    """Parse "YYYY-MM" into the first day of that month.

    Raises:
        ConfigurationInvalidError: If the string is malformed.
    """
    try:
        year_str, month_str = year_month.split("-")
        if len(year_str) != 4 or len(month_str) != 2:
            raise ValueError(year_month)
        return date(int(year_str), int(month_str), 1)
    except ValueError:
        raise ConfigurationInvalidError(
            f"Invalid year-month '{year_month}', expected YYYY-MM", field="year_month"
        ) from None
