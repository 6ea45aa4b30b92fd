"""Date parsing utilities."""

import re
from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_OFFSET_PATTERN = re.compile(r"^([+-])(\d+)\s*(day|week|month|year)s?$")


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports absolute and relative dates:
    - Absolute dates: "2025-01-15", "January 15, 2025", etc.
    - Relative dates: "today", "yesterday", "tomorrow"
    - Period starts: "this month", "next month", "next year"
    - Offsets: "+10 days", "-2 weeks", "+3 months"

    Args:
        date_str: Date string in various formats
        today: Reference day for relative dates (defaults to the system date)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "this month": today.replace(day=1),
        "next month": (today + relativedelta(months=1)).replace(day=1),
        "this year": today.replace(month=1, day=1),
        "next year": today.replace(month=1, day=1) + relativedelta(years=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    match = _OFFSET_PATTERN.match(date_str)
    if match:
        sign, count, unit = match.groups()
        count = int(count) if sign == "+" else -int(count)
        return today + relativedelta(**{f"{unit}s": count})

    # ISO dates are unambiguous; anything else goes through dateutil
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        pass

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
