from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import transaction
from django.dispatch import Signal


logger = logging.getLogger(__name__)


# kwargs: bookings (list[Booking], first is the series parent)
booking_created = Signal()
# kwargs: booking (Booking), previous (BookingSnapshot)
booking_updated = Signal()
# kwargs: booking (Booking)
booking_cancelled = Signal()


@dataclass(frozen=True)
class BookingSnapshot:
    """Window and room of a booking as they were before an update."""

    room_name: str
    start_time: datetime
    end_time: datetime

    @classmethod
    def of(cls, booking) -> "BookingSnapshot":
        return cls(room_name=booking.room.name, start_time=booking.start_time, end_time=booking.end_time)


def emit_on_commit(signal: Signal, sender, **kwargs) -> None:
    """
    Send `signal` once the surrounding transaction commits.

    Receivers run through `send_robust`, so a failing notifier is logged and
    never reaches the booking that triggered it.
    """

    def _dispatch() -> None:
        for receiver, result in signal.send_robust(sender=sender, **kwargs):
            if isinstance(result, Exception):
                logger.warning("Booking event receiver %r failed: %s", receiver, result)

    transaction.on_commit(_dispatch)
