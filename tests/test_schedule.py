"""Tests for recurrence date math."""

import pytest
from datetime import date, timedelta

from treasury.domain.entities import Frequency
from treasury.domain.schedule import (
    MAX_OCCURRENCES,
    clamp_to_day,
    day_key,
    first_occurrence,
    installment_end_date,
    instance_label,
    next_occurrence,
    occurrence_dates,
    weekday_index,
)


class TestNextOccurrence:
    """Tests for next_occurrence."""

    def test_monthly_day_31_clamps_to_leap_february(self):
        assert next_occurrence(date(2024, 1, 31), Frequency.MONTHLY, 31) == date(2024, 2, 29)

    def test_monthly_day_31_clamps_to_february(self):
        assert next_occurrence(date(2025, 1, 31), Frequency.MONTHLY, 31) == date(2025, 2, 28)

    def test_monthly_restores_anchor_after_short_month(self):
        assert next_occurrence(date(2025, 2, 28), Frequency.MONTHLY, 31) == date(2025, 3, 31)

    def test_quarterly_day_31_clamps_to_april(self):
        assert next_occurrence(date(2025, 1, 31), Frequency.QUARTERLY, 31) == date(2025, 4, 30)

    def test_yearly_from_leap_day(self):
        assert next_occurrence(date(2024, 2, 29), Frequency.YEARLY, 29) == date(2025, 2, 28)

    def test_monthly_defaults_anchor_to_current_day(self):
        assert next_occurrence(date(2025, 3, 20), Frequency.MONTHLY) == date(2025, 4, 20)

    def test_monthly_crosses_year_boundary(self):
        assert next_occurrence(date(2025, 12, 15), Frequency.MONTHLY, 15) == date(2026, 1, 15)

    @pytest.mark.parametrize(
        "frequency,days",
        [(Frequency.DAILY, 1), (Frequency.WEEKLY, 7), (Frequency.BIWEEKLY, 14)],
    )
    def test_fixed_steps(self, frequency, days):
        start = date(2025, 2, 26)
        assert next_occurrence(start, frequency, day_of_week=3) == start + timedelta(days=days)

    def test_accepts_string_frequency(self):
        assert next_occurrence(date(2025, 1, 15), "MONTHLY", 15) == date(2025, 2, 15)

    def test_none_frequency_raises(self):
        with pytest.raises(ValueError):
            next_occurrence(date(2025, 1, 15), Frequency.NONE)

    @pytest.mark.parametrize(
        "frequency",
        [f for f in Frequency if f != Frequency.NONE],
    )
    def test_repeated_calls_strictly_increase(self, frequency):
        current = date(2024, 1, 31)
        for _ in range(60):
            following = next_occurrence(current, frequency, day_of_month=31, day_of_week=3)
            assert following > current
            current = following


class TestFirstOccurrence:
    """Tests for first_occurrence alignment."""

    def test_weekly_moves_forward_to_weekday(self):
        # 2025-01-10 is a Friday; 1 = Monday
        assert first_occurrence(date(2025, 1, 10), Frequency.WEEKLY, day_of_week=1) == date(2025, 1, 13)

    def test_weekly_keeps_matching_start(self):
        assert first_occurrence(date(2025, 1, 10), Frequency.BIWEEKLY, day_of_week=5) == date(2025, 1, 10)

    def test_monthly_anchor_later_in_start_month(self):
        assert first_occurrence(date(2025, 1, 10), Frequency.MONTHLY, day_of_month=15) == date(2025, 1, 15)

    def test_monthly_anchor_already_passed(self):
        assert first_occurrence(date(2025, 1, 20), Frequency.MONTHLY, day_of_month=15) == date(2025, 2, 15)

    def test_quarterly_anchor_already_passed(self):
        assert first_occurrence(date(2025, 1, 20), Frequency.QUARTERLY, day_of_month=15) == date(2025, 4, 15)

    def test_daily_starts_on_start_date(self):
        assert first_occurrence(date(2025, 1, 20), Frequency.DAILY) == date(2025, 1, 20)


class TestOccurrenceDates:
    """Tests for occurrence_dates."""

    def test_monthly_window(self):
        dates = occurrence_dates(
            date(2025, 1, 10),
            None,
            Frequency.MONTHLY,
            day_of_month=15,
            horizon=date(2025, 4, 10),
            today=date(2025, 1, 10),
        )
        assert dates == [date(2025, 1, 15), date(2025, 2, 15), date(2025, 3, 15)]

    def test_skips_dates_before_today(self):
        today = date(2025, 1, 10)
        dates = occurrence_dates(
            date(2024, 6, 1),
            None,
            Frequency.MONTHLY,
            day_of_month=1,
            horizon=date(2025, 6, 10),
            today=today,
        )
        assert dates[0] == date(2025, 2, 1)
        assert all(d >= today for d in dates)

    def test_includes_today(self):
        today = date(2025, 1, 15)
        dates = occurrence_dates(
            date(2025, 1, 1), None, Frequency.MONTHLY, 15, horizon=date(2025, 2, 1), today=today
        )
        assert dates == [today]

    def test_end_date_bounds_window(self):
        dates = occurrence_dates(
            date(2025, 1, 1),
            date(2025, 3, 1),
            Frequency.MONTHLY,
            day_of_month=15,
            horizon=date(2025, 12, 31),
            today=date(2025, 1, 1),
        )
        assert dates == [date(2025, 1, 15), date(2025, 2, 15)]

    def test_capped_at_max_occurrences(self):
        dates = occurrence_dates(
            date(2025, 1, 1),
            None,
            Frequency.DAILY,
            horizon=date(2026, 1, 1),
            today=date(2025, 1, 1),
        )
        assert len(dates) == MAX_OCCURRENCES
        assert dates[-1] == date(2025, 1, 1) + timedelta(days=MAX_OCCURRENCES - 1)

    def test_default_horizon_is_twelve_months(self):
        dates = occurrence_dates(
            date(2025, 1, 10), None, Frequency.MONTHLY, 15, today=date(2025, 1, 10)
        )
        assert dates[0] == date(2025, 1, 15)
        assert dates[-1] == date(2025, 12, 15)
        assert len(dates) == 12

    def test_weekly_dates_fall_on_anchor_weekday(self):
        dates = occurrence_dates(
            date(2025, 1, 1),
            None,
            Frequency.WEEKLY,
            day_of_week=1,
            horizon=date(2025, 2, 10),
            today=date(2025, 1, 10),
        )
        assert dates == [
            date(2025, 1, 13),
            date(2025, 1, 20),
            date(2025, 1, 27),
            date(2025, 2, 3),
            date(2025, 2, 10),
        ]
        assert all(weekday_index(d) == 1 for d in dates)

    def test_day_31_series_clamps_each_month(self):
        dates = occurrence_dates(
            date(2025, 1, 1),
            None,
            Frequency.MONTHLY,
            day_of_month=31,
            horizon=date(2025, 5, 1),
            today=date(2025, 1, 1),
        )
        assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]

    def test_empty_when_window_elapsed(self):
        dates = occurrence_dates(
            date(2024, 1, 1),
            date(2024, 6, 1),
            Frequency.MONTHLY,
            day_of_month=1,
            horizon=date(2025, 6, 1),
            today=date(2025, 1, 10),
        )
        assert dates == []


class TestHelpers:
    """Tests for small date helpers."""

    def test_weekday_index_sunday_is_zero(self):
        assert weekday_index(date(2025, 1, 12)) == 0
        assert weekday_index(date(2025, 1, 18)) == 6

    def test_clamp_to_day(self):
        assert clamp_to_day(date(2025, 2, 3), 30) == date(2025, 2, 28)
        assert clamp_to_day(date(2025, 3, 3), 30) == date(2025, 3, 30)

    def test_keys_and_labels(self):
        assert day_key(date(2025, 3, 5)) == "2025-03-05"
        assert instance_label(date(2025, 3, 5)) == "2025-03"

    def test_installment_end_date_monthly(self):
        assert installment_end_date(date(2025, 1, 31), Frequency.MONTHLY, 3) == date(2025, 3, 31)

    def test_installment_end_date_weekly(self):
        assert installment_end_date(date(2025, 1, 6), Frequency.WEEKLY, 4) == date(2025, 1, 27)

    def test_installment_end_date_single(self):
        assert installment_end_date(date(2025, 1, 6), Frequency.YEARLY, 1) == date(2025, 1, 6)

    def test_installment_end_date_rejects_zero(self):
        with pytest.raises(ValueError):
            installment_end_date(date(2025, 1, 6), Frequency.MONTHLY, 0)
