"""Recurrence date math.

Pure functions computing occurrence dates for recurrence templates. Month
based frequencies always step from the first day of the month and then clamp
to the anchor day, so a day-31 anchor lands on the last day of short months
instead of spilling into the following month.

Days of the week use 0 = Sunday through 6 = Saturday.
"""

import calendar
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from treasury.domain.entities import Frequency, MONTH_ANCHORED, WEEK_ANCHORED

# Horizon used when a caller does not supply one
DEFAULT_HORIZON_MONTHS = 12

# Upper bound on dates emitted by a single occurrence_dates call
MAX_OCCURRENCES = 100

_FIXED_STEPS = {
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(days=7),
    Frequency.BIWEEKLY: timedelta(days=14),
}

_MONTH_STEPS = {
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}


def last_day_of_month(year: int, month: int) -> int:
    """Return the number of days in the given month."""
    return calendar.monthrange(year, month)[1]


def clamp_to_day(d: date, day_of_month: int) -> date:
    """Move a date to the anchor day within its own month, clamped to month length."""
    return d.replace(day=min(day_of_month, last_day_of_month(d.year, d.month)))


def weekday_index(d: date) -> int:
    """Return the day of week of a date with 0 = Sunday."""
    return (d.weekday() + 1) % 7


def day_key(d: date) -> str:
    """Return the YYYY-MM-DD key used to compare occurrences by calendar day."""
    return d.strftime("%Y-%m-%d")


def instance_label(d: date) -> str:
    """Return the YYYY-MM label grouping an instance by month."""
    return d.strftime("%Y-%m")


def next_occurrence(
    current: date,
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> date:
    """Compute the occurrence following ``current``.

    Args:
        current: Current occurrence date
        frequency: Recurrence frequency
        day_of_month: Anchor day for monthly, quarterly and yearly frequencies
            (defaults to the day of ``current``)
        day_of_week: Anchor weekday; weekly steps are fixed so it is only
            used to align the first occurrence

    Returns:
        Next occurrence date

    Raises:
        ValueError: If frequency is NONE or unknown
    """
    frequency = Frequency(frequency)

    if frequency in _FIXED_STEPS:
        return current + _FIXED_STEPS[frequency]

    if frequency in _MONTH_STEPS:
        anchor = day_of_month or current.day
        # Step from day 1 so the month arithmetic never overflows
        target = current.replace(day=1) + _MONTH_STEPS[frequency]
        return clamp_to_day(target, anchor)

    raise ValueError(f"Frequency {frequency.value} does not recur")


def first_occurrence(
    start_date: date,
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
) -> date:
    """Align a start date to the first date matching the template anchor.

    Weekly frequencies move forward to the anchor weekday. Month based
    frequencies clamp to the anchor day of the start month, advancing one
    period when that day already passed.
    """
    frequency = Frequency(frequency)

    if frequency in WEEK_ANCHORED and day_of_week is not None:
        offset = (day_of_week - weekday_index(start_date)) % 7
        return start_date + timedelta(days=offset)

    if frequency in MONTH_ANCHORED and day_of_month:
        first = clamp_to_day(start_date, day_of_month)
        if first < start_date:
            return next_occurrence(first, frequency, day_of_month, day_of_week)
        return first

    return start_date


def occurrence_dates(
    start_date: date,
    end_date: Optional[date],
    frequency: Frequency | str,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
    horizon: Optional[date] = None,
    today: Optional[date] = None,
) -> list[date]:
    """Generate the upcoming occurrence dates of a recurrence.

    Dates before ``today`` are walked over but not returned, so a template
    whose start lies in the past never yields elapsed occurrences. At most
    MAX_OCCURRENCES dates are returned.

    Args:
        start_date: Template start date
        end_date: Optional template end date
        frequency: Recurrence frequency
        day_of_month: Optional day-of-month anchor
        day_of_week: Optional day-of-week anchor (0 = Sunday)
        horizon: Last date to consider; defaults to DEFAULT_HORIZON_MONTHS
            months after ``today``
        today: Reference day; defaults to the system date

    Returns:
        Strictly ascending list of occurrence dates
    """
    today = today or date.today()
    if horizon is None:
        horizon = today + relativedelta(months=DEFAULT_HORIZON_MONTHS)

    upper_bound = min(end_date, horizon) if end_date is not None else horizon

    dates: list[date] = []
    current = first_occurrence(start_date, frequency, day_of_month, day_of_week)
    while current <= upper_bound and len(dates) < MAX_OCCURRENCES:
        if current >= today:
            dates.append(current)
        current = next_occurrence(current, frequency, day_of_month, day_of_week)

    return dates


def installment_end_date(start_date: date, frequency: Frequency | str, installments: int) -> date:
    """Return the date of the last installment of a series starting on ``start_date``.

    Raises:
        ValueError: If installments is not positive or frequency does not recur
    """
    if installments < 1:
        raise ValueError("Installments must be at least 1")

    frequency = Frequency(frequency)
    periods = installments - 1

    if frequency in _FIXED_STEPS:
        return start_date + _FIXED_STEPS[frequency] * periods
    if frequency in _MONTH_STEPS:
        return start_date + _MONTH_STEPS[frequency] * periods

    raise ValueError(f"Frequency {frequency.value} does not recur")
