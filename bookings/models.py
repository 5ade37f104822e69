from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from .recurrence import RecurrencePattern


class Room(models.Model):
    name = models.CharField(max_length=80, unique=True)
    location = models.CharField(max_length=120, blank=True)
    description = models.TextField(blank=True)
    capacity = models.PositiveSmallIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class BookingStatus(models.TextChoices):
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"


class BookingQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status=BookingStatus.CANCELLED)

    def for_room(self, room_id: int):
        return self.filter(room_id=room_id)

    def overlapping(self, start: datetime, end: datetime):
        """
        Bookings whose [start_time, end_time) overlaps [start, end).
        Mirrors `bookings.windows.overlaps` clause for clause.
        """
        return self.filter(
            Q(start_time__lte=start, end_time__gt=start)
            | Q(start_time__lt=end, end_time__gte=end)
            | Q(start_time__gte=start, end_time__lte=end)
        )


class Booking(models.Model):
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name="bookings")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
        null=True,
        blank=True,
    )
    guest_name = models.CharField(max_length=120, blank=True)
    guest_email = models.EmailField(blank=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(
        max_length=16,
        choices=BookingStatus.choices,
        default=BookingStatus.CONFIRMED,
    )
    guest_emails = models.JSONField(default=list, blank=True)
    attendees = models.PositiveSmallIntegerField(default=1)

    is_recurring = models.BooleanField(default=False)
    recurrence_pattern = models.CharField(
        max_length=16,
        choices=RecurrencePattern.choices,
        blank=True,
    )
    recurrence_interval = models.PositiveSmallIntegerField(null=True, blank=True)
    recurrence_end_date = models.DateTimeField(null=True, blank=True)
    # 0 = Sunday ... 6 = Saturday
    recurrence_days_of_week = models.JSONField(default=list, blank=True)
    # First booking of the series; occurrences stay independent once created.
    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="occurrences",
    )

    reminder_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=F("start_time")),
                name="booking_end_after_start",
            )
        ]
        indexes = [
            models.Index(fields=["room", "start_time"], name="idx_booking_room_start"),
            models.Index(fields=["user", "start_time"], name="idx_booking_user_start"),
        ]
        ordering = ["start_time", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.room} · {self.title} · {self.start_time:%Y-%m-%d %H:%M}"

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    @property
    def organizer_email(self) -> str:
        if self.user_id is not None:
            return self.user.email
        return self.guest_email

    @property
    def organizer_name(self) -> str:
        if self.user_id is not None:
            return self.user.get_full_name() or self.user.get_username()
        return self.guest_name

    def is_owned_by(self, user) -> bool:
        return self.user_id is not None and self.user_id == user.id

