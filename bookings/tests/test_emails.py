import logging
from unittest import mock

import pytest

from bookings.emails import BookingEmailPayload, send_booking_email
from bookings.recurrence import RecurrenceRule
from bookings.services import (
    BookingInput,
    BookingUpdateInput,
    RecurringBookingInput,
    cancel_booking,
    create_booking,
    create_recurring_booking,
    update_booking,
)
from bookings.tests.helpers import at


pytestmark = pytest.mark.django_db


def _book(user, room, **kwargs):
    return create_booking(
        user=user,
        data=BookingInput(room_id=room.id, title="Design review", start=at(2024, 6, 1, 10), end=at(2024, 6, 1, 11), **kwargs),
    )


def test_organizer_is_notified_after_commit(room, member, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        _book(member, room)

    assert len(callbacks) == 1
    assert len(mailoutbox) == 1
    message = mailoutbox[0]
    assert message.to == ["dana@example.com"]
    assert message.subject == "Meeting room booking confirmed: Design review"
    assert "Room: Alpha (Floor 1)" in message.body
    assert message.alternatives[0][1] == "text/html"


def test_no_mail_until_commit(room, member, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks() as callbacks:
        _book(member, room)

    assert len(callbacks) == 1
    assert mailoutbox == []


def test_guests_get_a_separate_invitation(room, member, mailoutbox, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        _book(member, room, guest_emails=("g1@example.com", "g2@example.com"))

    assert [m.to for m in mailoutbox] == [["dana@example.com"], ["g1@example.com", "g2@example.com"]]
    assert mailoutbox[1].subject == "Meeting invitation: Design review"


def test_admin_copy(room, member, mailoutbox, django_capture_on_commit_callbacks, settings):
    settings.ADMIN_NOTIFICATION_EMAIL = "facilities@example.com"
    with django_capture_on_commit_callbacks(execute=True):
        _book(member, room)

    assert [m.to for m in mailoutbox] == [["dana@example.com"], ["facilities@example.com"]]
    assert mailoutbox[1].subject == "New booking: Design review"


def test_series_sends_one_notification(room, member, mailoutbox, django_capture_on_commit_callbacks):
    data = RecurringBookingInput(
        booking=BookingInput(room_id=room.id, title="Standup", start=at(2024, 6, 3, 9), end=at(2024, 6, 3, 9, 30)),
        recurrence=RecurrenceRule(pattern="DAILY", end_date=at(2024, 6, 7, 9)),
    )
    with django_capture_on_commit_callbacks(execute=True):
        create_recurring_booking(user=member, data=data)

    assert len(mailoutbox) == 1
    assert "Occurrences: 5" in mailoutbox[0].body


def test_update_mentions_previous_slot(room, member, mailoutbox, django_capture_on_commit_callbacks):
    booking = _book(member, room, guest_emails=("g1@example.com",))
    with django_capture_on_commit_callbacks(execute=True):
        update_booking(
            user=member,
            booking_id=booking.id,
            changes=BookingUpdateInput(start=at(2024, 6, 1, 14), end=at(2024, 6, 1, 15)),
        )

    assert len(mailoutbox) == 1
    message = mailoutbox[0]
    assert message.to == ["dana@example.com", "g1@example.com"]
    assert "Previously: Alpha, Sat 1 Jun 2024, 10:00 - 11:00" in message.body
    assert "Sat 1 Jun 2024, 14:00 - 15:00" in message.body


def test_cancel_notifies_organizer_only(room, member, mailoutbox, django_capture_on_commit_callbacks):
    booking = _book(member, room, guest_emails=("g1@example.com",))
    with django_capture_on_commit_callbacks(execute=True):
        cancel_booking(user=member, booking_id=booking.id)

    assert [m.to for m in mailoutbox] == [["dana@example.com"]]
    assert mailoutbox[0].subject == "Meeting room booking cancelled: Design review"


def test_failing_notifier_does_not_undo_booking(room, member, mailoutbox, django_capture_on_commit_callbacks):
    with mock.patch("bookings.emails.deliver_booking_email", side_effect=ConnectionRefusedError):
        with django_capture_on_commit_callbacks(execute=True):
            booking = _book(member, room)

    booking.refresh_from_db()
    assert booking.status == "confirmed"
    assert mailoutbox == []


def test_broken_receiver_is_logged(room, member, caplog, django_capture_on_commit_callbacks):
    with mock.patch("bookings.emails.send_booking_email", side_effect=RuntimeError("boom")):
        with caplog.at_level(logging.WARNING, logger="bookings.signals"):
            with django_capture_on_commit_callbacks(execute=True):
                booking = _book(member, room)

    assert booking.pk is not None
    assert "boom" in caplog.text


class TestSendBookingEmail:
    def _payload(self, to_emails):
        return BookingEmailPayload(
            to_emails=to_emails,
            event="reminder",
            title="Design review",
            room_name="Alpha",
            start_time=at(2024, 6, 1, 10),
            end_time=at(2024, 6, 1, 11),
        )

    def test_without_recipients_nothing_is_sent(self, mailoutbox):
        assert send_booking_email(self._payload(())) is False
        assert mailoutbox == []

    def test_sends_reminder(self, mailoutbox):
        assert send_booking_email(self._payload(("dana@example.com",))) is True
        assert mailoutbox[0].subject == "Reminder: Design review starts soon"

    def test_failure_is_logged_not_raised(self, caplog):
        with mock.patch("bookings.emails.EmailMultiAlternatives.send", side_effect=OSError("smtp down")):
            assert send_booking_email(self._payload(("dana@example.com",))) is False
        assert "Failed to send booking email (reminder) to dana@example.com" in caplog.text

    def test_for_booking_drops_blank_addresses(self, room, member):
        booking = _book(member, room)
        payload = BookingEmailPayload.for_booking(booking, event="created", to_emails=["", "dana@example.com"])
        assert payload.to_emails == ("dana@example.com",)
        assert payload.organizer_name == "Dana Levi"
