from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.utils import timezone

from .exceptions import ConflictError, NoOccurrencesError
from .models import Booking, BookingStatus, Room
from .recurrence import Occurrence, RecurrenceRule
from .signals import BookingSnapshot, booking_cancelled, booking_created, booking_updated, emit_on_commit
from .windows import BookingPolicy, overlaps


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingInput:
    room_id: int
    title: str
    start: datetime
    end: datetime
    description: str = ""
    guest_emails: tuple[str, ...] = ()
    # Book on behalf of another user; honoured for administrators only.
    user_id: int | None = None


@dataclass(frozen=True)
class RecurringBookingInput:
    booking: BookingInput
    recurrence: RecurrenceRule


@dataclass(frozen=True)
class GuestBookingInput:
    room_id: int
    title: str
    start: datetime
    end: datetime
    guest_name: str
    guest_email: str
    description: str = ""
    attendees: int = 1


@dataclass(frozen=True)
class BookingUpdateInput:
    """Partial update: fields left as None keep their stored value."""

    room_id: int | None = None
    title: str | None = None
    description: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    guest_emails: tuple[str, ...] | None = None


@dataclass(frozen=True)
class CreatedSeries:
    bookings: list[Booking]

    @property
    def parent(self) -> Booking:
        return self.bookings[0]

    @property
    def count(self) -> int:
        return len(self.bookings)


def member_policy() -> BookingPolicy:
    return BookingPolicy(min_duration=timedelta(minutes=settings.BOOKING_MIN_DURATION_MINUTES))


def guest_policy() -> BookingPolicy:
    return BookingPolicy(min_duration=None, reject_past=True)


def find_conflict(
    *,
    room_id: int,
    start: datetime,
    end: datetime,
    exclude_id: int | None = None,
) -> Booking | None:
    """
    Return the earliest active booking on the room that overlaps [start, end), if any.
    """
    qs = Booking.objects.active().for_room(room_id).overlapping(start, end)
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.order_by("start_time", "id").first()


def _lock_room(room_id: int, *, require_active: bool = True) -> Room:
    """
    Row-lock the room so concurrent bookings on it run their
    check-then-insert one at a time.
    """
    qs = Room.objects.select_for_update()
    if require_active:
        qs = qs.filter(is_active=True)
    return qs.get(id=room_id)


def _resolve_owner(user, requested_user_id: int | None):
    if requested_user_id is None or requested_user_id == user.id or not user.is_staff:
        return user
    return get_user_model().objects.get(id=requested_user_id)


def _authorize(user, booking: Booking, action: str) -> None:
    if booking.is_owned_by(user) or user.is_staff:
        return
    raise PermissionDenied(f"You do not have permission to {action} this booking.")


def _check_series(room_id: int, occurrences: list[Occurrence]) -> None:
    previous = None
    for index, occurrence in enumerate(occurrences):
        conflict = find_conflict(room_id=room_id, start=occurrence.start, end=occurrence.end)
        if conflict is not None:
            raise ConflictError(
                f"Time slot {occurrence.start.isoformat()} is already booked.",
                booking=conflict,
                occurrence_index=index,
                occurrence_start=occurrence.start,
            )
        # Starts increase and durations are equal, so only the neighbour can collide.
        if previous is not None and overlaps(occurrence.start, occurrence.end, previous.start, previous.end):
            raise ConflictError(
                f"Time slot {occurrence.start.isoformat()} overlaps the previous occurrence of this series.",
                occurrence_index=index,
                occurrence_start=occurrence.start,
            )
        previous = occurrence


def create_booking(*, user, data: BookingInput) -> Booking:
    """
    Create a single booking safely:
    - Validates the window against the member policy.
    - Locks the target Room row and checks for overlaps in-transaction.
    - Emits `booking_created` after commit.
    """
    member_policy().validate(data.start, data.end)
    owner = _resolve_owner(user, data.user_id)

    with transaction.atomic():
        room = _lock_room(data.room_id)
        conflict = find_conflict(room_id=room.id, start=data.start, end=data.end)
        if conflict is not None:
            raise ConflictError("This time slot is already booked.", booking=conflict)

        booking = Booking.objects.create(
            room=room,
            user=owner,
            title=data.title,
            description=data.description,
            start_time=data.start,
            end_time=data.end,
            guest_emails=list(data.guest_emails),
        )
        emit_on_commit(booking_created, sender=Booking, bookings=[booking])

    logger.info("Booking %s created on room %s by user %s", booking.id, room.id, owner.id)
    return booking


def create_recurring_booking(*, user, data: RecurringBookingInput) -> CreatedSeries:
    """
    Create a whole series or nothing.

    Every occurrence is conflict-checked before the first write; the parent
    and its occurrences are then written in the same transaction, so a late
    conflict or a failed insert leaves no partial series behind.
    """
    details = data.booking
    rule = data.recurrence

    member_policy().validate(details.start, details.end)
    # Weekdays and month days follow the local calendar.
    occurrences = rule.expand(timezone.localtime(details.start), timezone.localtime(details.end))
    if not occurrences:
        raise NoOccurrencesError("No valid occurrences found for the recurrence pattern.")

    owner = _resolve_owner(user, details.user_id)

    with transaction.atomic():
        room = _lock_room(details.room_id)
        _check_series(room.id, occurrences)

        shared = {
            "room": room,
            "user": owner,
            "title": details.title,
            "description": details.description,
            "guest_emails": list(details.guest_emails),
            "is_recurring": True,
            "recurrence_pattern": rule.pattern,
            "recurrence_interval": rule.interval,
            "recurrence_end_date": rule.end_date,
            "recurrence_days_of_week": sorted(rule.days_of_week),
        }
        first, *rest = occurrences
        parent = Booking.objects.create(start_time=first.start, end_time=first.end, **shared)
        children = Booking.objects.bulk_create(
            [Booking(start_time=o.start, end_time=o.end, parent=parent, **shared) for o in rest]
        )
        bookings = [parent, *children]
        emit_on_commit(booking_created, sender=Booking, bookings=bookings)

    logger.info(
        "Recurring booking %s created on room %s with %d occurrences",
        parent.id,
        room.id,
        len(bookings),
    )
    return CreatedSeries(bookings=bookings)


def create_guest_booking(*, data: GuestBookingInput) -> Booking:
    guest_policy().validate(data.start, data.end, now=timezone.now())

    with transaction.atomic():
        room = _lock_room(data.room_id)
        conflict = find_conflict(room_id=room.id, start=data.start, end=data.end)
        if conflict is not None:
            raise ConflictError("This time slot is already reserved.", booking=conflict)

        booking = Booking.objects.create(
            room=room,
            guest_name=data.guest_name,
            guest_email=data.guest_email,
            title=data.title,
            description=data.description,
            start_time=data.start,
            end_time=data.end,
            attendees=data.attendees,
        )
        emit_on_commit(booking_created, sender=Booking, bookings=[booking])

    logger.info("Guest booking %s created on room %s", booking.id, room.id)
    return booking


def get_booking(*, user, booking_id: int) -> Booking:
    booking = Booking.objects.select_related("room", "user").get(id=booking_id)
    _authorize(user, booking, "view")
    return booking


def list_bookings(
    *,
    room_id: int | None = None,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    include_cancelled: bool = False,
):
    """
    Bookings ordered by start; `start`/`end` keep only bookings lying
    entirely inside the range.
    """
    qs = Booking.objects.select_related("room", "user")
    if not include_cancelled:
        qs = qs.active()
    if room_id is not None:
        qs = qs.filter(room_id=room_id)
    if user_id is not None:
        qs = qs.filter(user_id=user_id)
    if start is not None:
        qs = qs.filter(start_time__gte=start)
    if end is not None:
        qs = qs.filter(end_time__lte=end)
    return qs.order_by("start_time", "id")


def update_booking(*, user, booking_id: int, changes: BookingUpdateInput) -> Booking:
    """
    Update an existing booking (owner or administrator).
    Re-validates the window when start or end change and re-checks
    conflicts, ignoring the booking itself. Locks:
    - Booking row (to serialize edits)
    - Target Room row (to serialize with creations on that room)
    """
    with transaction.atomic():
        booking = (
            Booking.objects.active()
            .select_for_update(of=("self",))
            .select_related("room")
            .get(id=booking_id)
        )
        _authorize(user, booking, "edit")

        previous = BookingSnapshot.of(booking)
        moving = changes.room_id is not None and changes.room_id != booking.room_id
        start = changes.start if changes.start is not None else booking.start_time
        end = changes.end if changes.end is not None else booking.end_time

        # Guest bookings may be stored shorter than the member minimum.
        if changes.start is not None or changes.end is not None:
            member_policy().validate(start, end)

        room = _lock_room(changes.room_id if moving else booking.room_id, require_active=moving)
        conflict = find_conflict(room_id=room.id, start=start, end=end, exclude_id=booking.id)
        if conflict is not None:
            raise ConflictError("This time slot is already booked.", booking=conflict)

        update_fields = ["updated_at"]
        if moving:
            booking.room = room
            update_fields.append("room")
        if changes.title is not None:
            booking.title = changes.title
            update_fields.append("title")
        if changes.description is not None:
            booking.description = changes.description
            update_fields.append("description")
        if changes.guest_emails is not None:
            booking.guest_emails = list(changes.guest_emails)
            update_fields.append("guest_emails")
        if start != booking.start_time:
            booking.start_time = start
            booking.reminder_sent = False
            update_fields.extend(["start_time", "reminder_sent"])
        if end != booking.end_time:
            booking.end_time = end
            update_fields.append("end_time")

        booking.save(update_fields=update_fields)
        emit_on_commit(booking_updated, sender=Booking, booking=booking, previous=previous)

    logger.info("Booking %s updated by user %s", booking.id, user.id)
    return booking


def cancel_booking(*, user, booking_id: int) -> Booking:
    """
    Cancel an active booking (owner or administrator). The row is kept with
    status "cancelled" and no longer blocks its time slot. Other occurrences
    of the same series are left untouched.
    """
    with transaction.atomic():
        booking = (
            Booking.objects.active()
            .select_for_update(of=("self",))
            .select_related("room")
            .get(id=booking_id)
        )
        _authorize(user, booking, "cancel")

        booking.status = BookingStatus.CANCELLED
        booking.save(update_fields=["status", "updated_at"])
        emit_on_commit(booking_cancelled, sender=Booking, booking=booking)

    logger.info("Booking %s cancelled by user %s", booking.id, user.id)
    return booking
