from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from .emails import BookingEmailPayload, deliver_booking_email
from .models import Booking


logger = logging.getLogger(__name__)


def due_for_reminder(now: datetime):
    lead = timedelta(minutes=settings.BOOKING_REMINDER_LEAD_MINUTES)
    window = timedelta(minutes=settings.BOOKING_REMINDER_WINDOW_MINUTES)
    return (
        Booking.objects.active()
        .select_related("room", "user")
        .filter(
            reminder_sent=False,
            start_time__gte=now + lead,
            start_time__lte=now + lead + window,
        )
        .order_by("start_time", "id")
    )


def send_due_reminders(*, now: datetime | None = None) -> dict[str, int]:
    """
    E-mail the organizer of every active booking about to start and flag it.

    Each booking is claimed with a conditional update before sending, so
    overlapping sweeps never mail it twice; one claimed elsewhere counts as
    skipped. A booking without an address is skipped; a failed delivery is
    logged and released so the next sweep retries it.
    """
    if now is None:
        now = timezone.now()

    sent = 0
    skipped = 0
    failed = 0

    for booking in due_for_reminder(now):
        email = booking.organizer_email
        if not email:
            logger.error("No email found for booking %s", booking.id)
            skipped += 1
            continue

        claimed = Booking.objects.filter(id=booking.id, reminder_sent=False).update(reminder_sent=True)
        if not claimed:
            skipped += 1
            continue

        try:
            deliver_booking_email(BookingEmailPayload.for_booking(booking, event="reminder", to_emails=[email]))
        except Exception:
            logger.exception("Failed to send reminder for booking %s", booking.id)
            Booking.objects.filter(id=booking.id).update(reminder_sent=False)
            failed += 1
            continue

        sent += 1

    return {"sent": sent, "skipped": skipped, "failed": failed}
