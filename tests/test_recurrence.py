"""Recurrence normalisation, descriptions and expansion."""

from __future__ import annotations

from datetime import date, timedelta

from taskdesk.common.constants import RecurrenceFrequency
from taskdesk.tasks.recurrence import (
    describe_recurrence,
    normalize_recurrence,
    portal_weekday,
    toggle_day,
    upcoming_occurrences,
)


class TestNormalize:
    def test_unknown_frequency_becomes_none(self):
        assert normalize_recurrence({"frequency": "hourly"}).frequency == RecurrenceFrequency.none

    def test_interval_coerced(self):
        assert normalize_recurrence({"interval": 0}).interval == 1
        assert normalize_recurrence({"interval": -3}).interval == 1
        assert normalize_recurrence({"interval": "abc"}).interval == 1
        assert normalize_recurrence({"interval": "3"}).interval == 3

    def test_days_filtered_and_deduplicated(self):
        rule = normalize_recurrence({"daysOfWeek": [1, 1, 7, -1, "3", "x"]})
        assert rule.days_of_week == [1, 3]

    def test_empty_end_date_becomes_none(self):
        assert normalize_recurrence({"endDate": ""}).end_date is None
        assert normalize_recurrence({"endDate": "2025-06-30T00:00:00.000Z"}).end_date == date(2025, 6, 30)

    def test_none_is_default_rule(self):
        rule = normalize_recurrence(None)
        assert rule.frequency == RecurrenceFrequency.none
        assert rule.interval == 1


class TestToggleDay:
    def test_add_then_remove(self):
        rule = normalize_recurrence({"frequency": "weekly"})
        rule = toggle_day(rule, 3)
        assert rule.days_of_week == [3]
        rule = toggle_day(rule, 3)
        assert rule.days_of_week == []


class TestDescribe:
    def test_descriptions(self):
        assert describe_recurrence(normalize_recurrence({})) == "Does not repeat"
        assert describe_recurrence(normalize_recurrence({"frequency": "daily"})) == "Every day"
        rule = normalize_recurrence({"frequency": "weekly", "interval": 2, "daysOfWeek": [3, 1]})
        assert describe_recurrence(rule) == "Every 2 weeks on Mon, Wed"

    def test_sunday_listed_last(self):
        rule = normalize_recurrence({"frequency": "weekly", "daysOfWeek": [0, 6]})
        assert describe_recurrence(rule) == "Every week on Sat, Sun"

    def test_until_suffix(self):
        rule = normalize_recurrence({"frequency": "monthly", "endDate": "2025-06-30"})
        assert describe_recurrence(rule) == "Every month until 2025-06-30"


class TestOccurrences:
    def test_portal_weekday_numbering(self):
        assert portal_weekday(date(2025, 1, 5)) == 0  # Sunday
        assert portal_weekday(date(2025, 1, 6)) == 1

    def test_non_repeating_is_single_date(self):
        assert upcoming_occurrences(normalize_recurrence({}), date(2025, 1, 1)) == [date(2025, 1, 1)]

    def test_daily_interval_and_end_date(self):
        rule = normalize_recurrence({"frequency": "daily", "interval": 2, "endDate": "2025-01-06"})
        assert upcoming_occurrences(rule, date(2025, 1, 1)) == [
            date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 5),
        ]

    def test_weekly_with_days(self):
        # 2025-01-06 is a Monday
        rule = normalize_recurrence({"frequency": "weekly", "daysOfWeek": [1, 3]})
        assert upcoming_occurrences(rule, date(2025, 1, 6), count=4) == [
            date(2025, 1, 6), date(2025, 1, 8), date(2025, 1, 13), date(2025, 1, 15),
        ]

    def test_biweekly_skips_alternate_weeks(self):
        rule = normalize_recurrence({"frequency": "weekly", "interval": 2, "daysOfWeek": [1]})
        assert upcoming_occurrences(rule, date(2025, 1, 6), count=3) == [
            date(2025, 1, 6), date(2025, 1, 20), date(2025, 2, 3),
        ]

    def test_long_weekly_interval_still_fills_count(self):
        rule = normalize_recurrence({"frequency": "weekly", "interval": 600, "daysOfWeek": [1]})
        dates = upcoming_occurrences(rule, date(2025, 1, 6), count=3)
        assert dates == [
            date(2025, 1, 6),
            date(2025, 1, 6) + timedelta(weeks=600),
            date(2025, 1, 6) + timedelta(weeks=1200),
        ]

    def test_weekly_days_before_start_roll_to_next_cycle(self):
        # Wednesday start; Monday of the same week is already past
        rule = normalize_recurrence({"frequency": "weekly", "interval": 2, "daysOfWeek": [1, 5]})
        assert upcoming_occurrences(rule, date(2025, 1, 8), count=3) == [
            date(2025, 1, 10), date(2025, 1, 20), date(2025, 1, 24),
        ]

    def test_monthly_clamps_to_month_end(self):
        rule = normalize_recurrence({"frequency": "monthly"})
        assert upcoming_occurrences(rule, date(2025, 1, 31), count=3) == [
            date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31),
        ]

    def test_yearly_leap_day(self):
        rule = normalize_recurrence({"frequency": "yearly"})
        assert upcoming_occurrences(rule, date(2024, 2, 29), count=2) == [
            date(2024, 2, 29), date(2025, 2, 28),
        ]

    def test_start_after_end_is_empty(self):
        rule = normalize_recurrence({"frequency": "daily", "endDate": "2024-12-31"})
        assert upcoming_occurrences(rule, date(2025, 1, 1)) == []
