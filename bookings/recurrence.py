from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from dateutil.relativedelta import relativedelta
from django.db import models


# Hard ceiling on generation steps for any pattern.
MAX_OCCURRENCES = 365

# Without an end date WEEKLY and MONTHLY series stop after about a year.
WEEKLY_OPEN_ENDED_LIMIT = 52
MONTHLY_OPEN_ENDED_LIMIT = 12

# Day-of-week scan lookahead and the fallback floor used when nothing matches.
WEEKDAY_LOOKAHEAD_DAYS = 14
WEEKDAY_FALLBACK_MIN_OCCURRENCES = 10

# Largest accepted interval; also fits the smallint column.
MAX_INTERVAL = 365


class RecurrencePattern(models.TextChoices):
    DAILY = "DAILY", "Daily"
    WEEKLY = "WEEKLY", "Weekly"
    MONTHLY = "MONTHLY", "Monthly"


@dataclass(frozen=True)
class Occurrence:
    start: datetime
    end: datetime


def sunday_based_weekday(value: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def _open_ended_limit(pattern: RecurrencePattern) -> int | None:
    if pattern == RecurrencePattern.WEEKLY:
        return WEEKLY_OPEN_ENDED_LIMIT
    if pattern == RecurrencePattern.MONTHLY:
        return MONTHLY_OPEN_ENDED_LIMIT
    return None


def _next_matching_weekday(current: datetime, days: frozenset[int]) -> datetime | None:
    for offset in range(1, WEEKDAY_LOOKAHEAD_DAYS + 1):
        candidate = current + timedelta(days=offset)
        if sunday_based_weekday(candidate) in days:
            return candidate
    return None


def iter_occurrences(
    start: datetime,
    end: datetime,
    pattern: str,
    *,
    interval: int = 1,
    end_date: datetime | None = None,
    days_of_week: Iterable[int] = (),
) -> Iterator[Occurrence]:
    """
    Lazily yield the occurrence windows of a recurrence rule.

    The base window is always yielded first (unless it already lies past
    `end_date`). Every occurrence keeps the base duration. Day and month
    arithmetic is done on the wall clock of `start`'s timezone, so pass
    local times when the calendar matters.

    Generation stops at the first start after `end_date`; with no end date,
    WEEKLY stops after 52 occurrences and MONTHLY after 12. No pattern runs
    for more than 365 steps, and generation also ends where the calendar does.
    """
    pattern = RecurrencePattern(pattern)
    if interval < 1:
        raise ValueError("interval must be a positive integer.")

    duration = end - start
    days = frozenset(int(d) for d in days_of_week)
    filter_days = pattern == RecurrencePattern.WEEKLY and bool(days)
    limit = _open_ended_limit(pattern) if end_date is None else None

    current = start
    current_end = end
    produced = 0
    for step in range(1, MAX_OCCURRENCES + 1):
        if end_date is not None and current > end_date:
            return

        if step == 1 or not filter_days or sunday_based_weekday(current) in days:
            yield Occurrence(start=current, end=current_end)
            produced += 1

        if limit is not None and produced >= limit:
            return

        try:
            if pattern == RecurrencePattern.DAILY:
                current = current + timedelta(days=interval)
            elif pattern == RecurrencePattern.MONTHLY:
                # Anchored on the base date; relativedelta clamps Jan 31 to Feb 28/29.
                current = start + relativedelta(months=interval * step)
            elif not filter_days:
                current = current + timedelta(weeks=interval)
            else:
                following = _next_matching_weekday(current, days)
                if following is None:
                    if end_date is not None or produced >= WEEKDAY_FALLBACK_MIN_OCCURRENCES:
                        return
                    following = current + timedelta(weeks=interval)
                current = following
            current_end = current + duration
        except (OverflowError, ValueError):
            # The next date falls outside the calendar (past year 9999).
            return


def expand_occurrences(
    start: datetime,
    end: datetime,
    pattern: str,
    *,
    interval: int = 1,
    end_date: datetime | None = None,
    days_of_week: Iterable[int] = (),
) -> list[Occurrence]:
    return list(
        iter_occurrences(
            start,
            end,
            pattern,
            interval=interval,
            end_date=end_date,
            days_of_week=days_of_week,
        )
    )


@dataclass(frozen=True)
class RecurrenceRule:
    pattern: str
    interval: int = 1
    end_date: datetime | None = None
    days_of_week: tuple[int, ...] = ()

    def expand(self, start: datetime, end: datetime) -> list[Occurrence]:
        return expand_occurrences(
            start,
            end,
            self.pattern,
            interval=self.interval,
            end_date=self.end_date,
            days_of_week=self.days_of_week,
        )
