from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.dispatch import receiver
from django.template.loader import render_to_string

from .signals import BookingSnapshot, booking_cancelled, booking_created, booking_updated


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingEmailPayload:
    to_emails: tuple[str, ...]
    event: str  # created|invitation|admin|updated|cancelled|reminder
    title: str
    room_name: str
    start_time: datetime
    end_time: datetime
    organizer_name: str = ""
    location: str = ""
    occurrence_count: int = 1
    previous: BookingSnapshot | None = None

    @classmethod
    def for_booking(cls, booking, *, event: str, to_emails, **extra) -> "BookingEmailPayload":
        return cls(
            to_emails=tuple(email for email in to_emails if email),
            event=event,
            title=booking.title,
            room_name=booking.room.name,
            start_time=booking.start_time,
            end_time=booking.end_time,
            organizer_name=booking.organizer_name,
            location=booking.room.location,
            **extra,
        )


def deliver_booking_email(payload: BookingEmailPayload) -> None:
    """Render and send one booking email. Raises on delivery failure."""
    context = {
        "title": payload.title,
        "room_name": payload.room_name,
        "location": payload.location,
        "start_time": payload.start_time,
        "end_time": payload.end_time,
        "organizer_name": payload.organizer_name,
        "occurrence_count": payload.occurrence_count,
        "previous": payload.previous,
    }

    subject = render_to_string(f"emails/booking_{payload.event}_subject.txt", context).strip()
    text_body = render_to_string(f"emails/booking_{payload.event}.txt", context)
    html_body = render_to_string(f"emails/booking_{payload.event}.html", context)

    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=list(payload.to_emails),
    )
    if html_body:
        msg.attach_alternative(html_body, "text/html")
    msg.send(fail_silently=False)


def send_booking_email(payload: BookingEmailPayload) -> bool:
    """
    Send booking email. Returns True if sent, False if skipped or failed.
    Never raises (logs on failure).
    """
    if not payload.to_emails:
        return False

    try:
        deliver_booking_email(payload)
    except Exception:
        logger.exception("Failed to send booking email (%s) to %s", payload.event, ", ".join(payload.to_emails))
        return False
    return True


@receiver(booking_created, dispatch_uid="bookings.emails.notify_booking_created")
def notify_booking_created(sender, bookings, **kwargs) -> None:
    """One notification per request: the first booking stands for the whole series."""
    booking = bookings[0]
    count = len(bookings)

    send_booking_email(
        BookingEmailPayload.for_booking(
            booking, event="created", to_emails=[booking.organizer_email], occurrence_count=count
        )
    )
    if booking.guest_emails:
        send_booking_email(
            BookingEmailPayload.for_booking(
                booking, event="invitation", to_emails=booking.guest_emails, occurrence_count=count
            )
        )
    if settings.ADMIN_NOTIFICATION_EMAIL:
        send_booking_email(
            BookingEmailPayload.for_booking(
                booking, event="admin", to_emails=[settings.ADMIN_NOTIFICATION_EMAIL], occurrence_count=count
            )
        )


@receiver(booking_updated, dispatch_uid="bookings.emails.notify_booking_updated")
def notify_booking_updated(sender, booking, previous: BookingSnapshot, **kwargs) -> None:
    send_booking_email(
        BookingEmailPayload.for_booking(
            booking,
            event="updated",
            to_emails=[booking.organizer_email, *booking.guest_emails],
            previous=previous,
        )
    )


@receiver(booking_cancelled, dispatch_uid="bookings.emails.notify_booking_cancelled")
def notify_booking_cancelled(sender, booking, **kwargs) -> None:
    send_booking_email(
        BookingEmailPayload.for_booking(booking, event="cancelled", to_emails=[booking.organizer_email])
    )
