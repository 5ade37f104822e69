from __future__ import annotations

from datetime import datetime


class BookingError(Exception):
    """Base error type for booking domain errors."""

    code = "booking_error"


class InvalidWindowError(BookingError):
    """Raised when a booking ends at or before its start."""

    code = "invalid_window"


class TooShortError(BookingError):
    """Raised when a booking is shorter than the configured minimum."""

    code = "too_short"


class PastStartError(BookingError):
    """Raised when a guest booking starts in the past."""

    code = "past_start"


class NoOccurrencesError(BookingError):
    """Raised when a recurrence rule yields no dates at all."""

    code = "no_occurrences"


class ConflictError(BookingError):
    """
    Raised when a window overlaps an existing booking on the same room.

    `booking` is the blocking reservation (None when two occurrences of the
    same series collide); `occurrence_index` is set for recurring requests.
    """

    code = "conflict"

    def __init__(
        self,
        message: str,
        *,
        booking=None,
        occurrence_index: int | None = None,
        occurrence_start: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.booking = booking
        self.occurrence_index = occurrence_index
        self.occurrence_start = occurrence_start
