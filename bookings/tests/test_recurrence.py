from datetime import timedelta
from itertools import islice

import pytest

from bookings.recurrence import (
    MAX_OCCURRENCES,
    MONTHLY_OPEN_ENDED_LIMIT,
    WEEKLY_OPEN_ENDED_LIMIT,
    Occurrence,
    RecurrencePattern,
    RecurrenceRule,
    expand_occurrences,
    iter_occurrences,
    sunday_based_weekday,
)
from bookings.tests.helpers import at


MONDAY = at(2024, 6, 3, 10)  # 2024-06-03 is a Monday
MONDAY_END = at(2024, 6, 3, 11)


def _starts(occurrences):
    return [o.start for o in occurrences]


def test_sunday_based_weekday():
    assert sunday_based_weekday(at(2024, 6, 2)) == 0  # Sunday
    assert sunday_based_weekday(MONDAY) == 1
    assert sunday_based_weekday(at(2024, 6, 8)) == 6  # Saturday


class TestDaily:
    def test_open_ended_daily_stops_at_safety_ceiling(self):
        occurrences = expand_occurrences(at(2024, 1, 1, 10), at(2024, 1, 1, 11), "DAILY")

        assert len(occurrences) == MAX_OCCURRENCES == 365
        for previous, current in zip(occurrences, occurrences[1:]):
            assert current.start - previous.start == timedelta(hours=24)
        assert all(o.end - o.start == timedelta(hours=1) for o in occurrences)

    def test_interval_spaces_occurrences(self):
        occurrences = expand_occurrences(
            at(2024, 1, 1, 10), at(2024, 1, 1, 11), "DAILY", interval=3, end_date=at(2024, 1, 10, 23)
        )
        assert _starts(occurrences) == [at(2024, 1, d, 10) for d in (1, 4, 7, 10)]

    def test_end_date_is_inclusive_of_a_matching_start(self):
        occurrences = expand_occurrences(
            at(2024, 1, 1, 10), at(2024, 1, 1, 11), "DAILY", end_date=at(2024, 1, 10, 10)
        )
        assert len(occurrences) == 10
        assert occurrences[-1].start == at(2024, 1, 10, 10)

    def test_nothing_after_end_date(self):
        end_date = at(2024, 1, 10, 9, 59)
        occurrences = expand_occurrences(at(2024, 1, 1, 10), at(2024, 1, 1, 11), "DAILY", end_date=end_date)
        assert len(occurrences) == 9
        assert all(o.start <= end_date for o in occurrences)

    def test_end_date_before_start_yields_nothing(self):
        assert expand_occurrences(MONDAY, MONDAY_END, "DAILY", end_date=at(2024, 6, 1)) == []


class TestWeekly:
    def test_without_days_steps_by_weeks(self):
        occurrences = expand_occurrences(MONDAY, MONDAY_END, "WEEKLY", end_date=at(2024, 6, 24, 10))
        assert _starts(occurrences) == [at(2024, 6, d, 10) for d in (3, 10, 17, 24)]

    def test_interval_skips_weeks(self):
        occurrences = expand_occurrences(
            MONDAY, MONDAY_END, "WEEKLY", interval=2, end_date=at(2024, 7, 1, 10)
        )
        assert _starts(occurrences) == [at(2024, 6, 3, 10), at(2024, 6, 17, 10), at(2024, 7, 1, 10)]

    def test_open_ended_weekly_is_capped(self):
        occurrences = expand_occurrences(MONDAY, MONDAY_END, "WEEKLY")
        assert len(occurrences) == WEEKLY_OPEN_ENDED_LIMIT == 52
        assert occurrences[-1].start == MONDAY + timedelta(weeks=51)

    def test_days_of_week_alternate(self):
        occurrences = list(islice(iter_occurrences(MONDAY, MONDAY_END, "WEEKLY", days_of_week=[1, 3]), 6))
        assert [sunday_based_weekday(o.start) for o in occurrences] == [1, 3, 1, 3, 1, 3]
        assert _starts(occurrences)[:4] == [at(2024, 6, d, 10) for d in (3, 5, 10, 12)]

    def test_days_of_week_scan_ignores_interval(self):
        plain = expand_occurrences(MONDAY, MONDAY_END, "WEEKLY", days_of_week=[1, 3], end_date=at(2024, 6, 30))
        spaced = expand_occurrences(
            MONDAY, MONDAY_END, "WEEKLY", interval=2, days_of_week=[1, 3], end_date=at(2024, 6, 30)
        )
        assert _starts(plain) == _starts(spaced)

    def test_base_window_kept_even_off_filter(self):
        tuesday = at(2024, 6, 4, 10)
        occurrences = expand_occurrences(
            tuesday, tuesday + timedelta(hours=1), "WEEKLY", days_of_week=[1, 3], end_date=at(2024, 6, 11)
        )
        assert _starts(occurrences) == [at(2024, 6, 4, 10), at(2024, 6, 5, 10), at(2024, 6, 10, 10)]

    def test_open_ended_with_days_is_capped(self):
        occurrences = expand_occurrences(MONDAY, MONDAY_END, "WEEKLY", days_of_week=[1, 3])
        assert len(occurrences) == 52

    def test_unmatchable_days_stop_after_base(self):
        occurrences = expand_occurrences(
            MONDAY, MONDAY_END, "WEEKLY", days_of_week=[7], end_date=at(2024, 12, 31)
        )
        assert _starts(occurrences) == [MONDAY]

    def test_days_of_week_ignored_for_daily(self):
        occurrences = expand_occurrences(
            MONDAY, MONDAY_END, "DAILY", days_of_week=[1], end_date=at(2024, 6, 5, 10)
        )
        assert len(occurrences) == 3


class TestMonthly:
    def test_month_end_clamps_in_leap_year(self):
        occurrences = expand_occurrences(at(2024, 1, 31, 9), at(2024, 1, 31, 10), "MONTHLY")
        assert _starts(occurrences)[:4] == [
            at(2024, 1, 31, 9),
            at(2024, 2, 29, 9),
            at(2024, 3, 31, 9),
            at(2024, 4, 30, 9),
        ]

    def test_month_end_clamps_in_common_year(self):
        occurrences = expand_occurrences(at(2023, 1, 31, 9), at(2023, 1, 31, 10), "MONTHLY")
        assert occurrences[1].start == at(2023, 2, 28, 9)

    def test_open_ended_monthly_is_capped(self):
        occurrences = expand_occurrences(at(2024, 1, 15, 9), at(2024, 1, 15, 10), "MONTHLY")
        assert len(occurrences) == MONTHLY_OPEN_ENDED_LIMIT == 12
        assert occurrences[-1].start == at(2024, 12, 15, 9)

    def test_interval_and_end_date(self):
        occurrences = expand_occurrences(
            at(2024, 1, 31, 9), at(2024, 1, 31, 10), "MONTHLY", interval=2, end_date=at(2024, 6, 1)
        )
        assert _starts(occurrences) == [at(2024, 1, 31, 9), at(2024, 3, 31, 9), at(2024, 5, 31, 9)]

    def test_duration_preserved(self):
        occurrences = expand_occurrences(at(2024, 1, 31, 9), at(2024, 1, 31, 10, 30), "MONTHLY")
        assert all(o.end - o.start == timedelta(minutes=90) for o in occurrences)


def test_generation_is_lazy():
    first = next(iter_occurrences(MONDAY, MONDAY_END, RecurrencePattern.DAILY))
    assert (first.start, first.end) == (MONDAY, MONDAY_END)


def test_rule_expand_matches_function():
    rule = RecurrenceRule(pattern="WEEKLY", interval=1, end_date=at(2024, 6, 30), days_of_week=(1, 3))
    assert rule.expand(MONDAY, MONDAY_END) == expand_occurrences(
        MONDAY, MONDAY_END, "WEEKLY", end_date=at(2024, 6, 30), days_of_week=(1, 3)
    )


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        expand_occurrences(MONDAY, MONDAY_END, "DAILY", interval=0)


@pytest.mark.parametrize("pattern", ["DAILY", "WEEKLY", "MONTHLY"])
def test_interval_past_the_calendar_stops_after_base(pattern):
    occurrences = expand_occurrences(MONDAY, MONDAY_END, pattern, interval=10**7)
    assert [o.start for o in occurrences] == [MONDAY]


def test_weekday_scan_past_the_calendar_stops():
    late = at(9999, 12, 20, 10)
    occurrences = expand_occurrences(late, late + timedelta(hours=1), "WEEKLY", days_of_week=[0])
    assert occurrences[0].start == late
    assert all(o.start.year == 9999 for o in occurrences)


def test_occurrence_ending_past_the_calendar_stops():
    late = at(9999, 12, 30, 10)
    occurrences = expand_occurrences(late, late + timedelta(hours=20), "DAILY")
    assert occurrences == [Occurrence(start=late, end=at(9999, 12, 31, 6))]


def test_rejects_unknown_pattern():
    with pytest.raises(ValueError):
        expand_occurrences(MONDAY, MONDAY_END, "YEARLY")
