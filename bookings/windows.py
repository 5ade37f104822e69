from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .exceptions import InvalidWindowError, PastStartError, TooShortError


DEFAULT_MIN_DURATION = timedelta(minutes=30)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Return True when [start, end) and [other_start, other_end) share any instant.

    Same three clauses as `BookingQuerySet.overlapping`:
    the new start falls inside the other window, the new end falls inside it,
    or the new window contains it. Touching boundaries (10:00-11:00 and
    11:00-12:00) do not overlap.
    """
    return (
        (other_start <= start < other_end)
        or (other_start < end <= other_end)
        or (start <= other_start and end >= other_end)
    )


def validate_window(
    start: datetime,
    end: datetime,
    *,
    min_duration: timedelta | None = DEFAULT_MIN_DURATION,
    reject_past: bool = False,
    now: datetime | None = None,
) -> None:
    if end <= start:
        raise InvalidWindowError("End time must be after start time.")

    if min_duration is not None and end - start < min_duration:
        minutes = int(min_duration.total_seconds() // 60)
        raise TooShortError(f"Minimum booking duration is {minutes} minutes.")

    if reject_past:
        if now is None:
            now = datetime.now(tz=start.tzinfo)
        if start < now:
            raise PastStartError("Cannot create a booking in the past.")


@dataclass(frozen=True)
class BookingPolicy:
    """
    Window rules applied to one kind of booking.

    Members get a minimum duration; guests get no minimum but cannot book
    a start time that already passed.
    """

    min_duration: timedelta | None = DEFAULT_MIN_DURATION
    reject_past: bool = False

    def validate(self, start: datetime, end: datetime, *, now: datetime | None = None) -> None:
        validate_window(
            start,
            end,
            min_duration=self.min_duration,
            reject_past=self.reject_past,
            now=now,
        )
