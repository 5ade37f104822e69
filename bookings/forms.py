from __future__ import annotations

from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import validate_email

from .recurrence import MAX_INTERVAL, RecurrencePattern, RecurrenceRule
from .services import BookingInput, BookingUpdateInput, GuestBookingInput, RecurringBookingInput


WEEKDAY_CHOICES = [
    (0, "Sunday"),
    (1, "Monday"),
    (2, "Tuesday"),
    (3, "Wednesday"),
    (4, "Thursday"),
    (5, "Friday"),
    (6, "Saturday"),
]


class BookingFieldsForm(forms.Form):
    """Fields shared by every booking payload. Bound to decoded JSON dicts."""

    room_id = forms.IntegerField(min_value=1)
    title = forms.CharField(min_length=1, max_length=200)
    description = forms.CharField(required=False)
    start_time = forms.DateTimeField()
    end_time = forms.DateTimeField()
    guest_emails = forms.JSONField(required=False)

    def clean_guest_emails(self) -> tuple[str, ...]:
        value = self.cleaned_data.get("guest_emails") or []
        if not isinstance(value, list):
            raise ValidationError("Expected a list of e-mail addresses.")

        emails = []
        for item in value:
            if not isinstance(item, str):
                raise ValidationError("Expected a list of e-mail addresses.")
            validate_email(item)
            emails.append(item.strip())
        return tuple(emails)


class BookingCreateForm(BookingFieldsForm):
    user_id = forms.IntegerField(required=False, min_value=1)
    is_recurring = forms.BooleanField(required=False)
    recurrence_pattern = forms.ChoiceField(choices=RecurrencePattern.choices, required=False)
    recurrence_interval = forms.IntegerField(required=False, min_value=1, max_value=MAX_INTERVAL)
    recurrence_end_date = forms.DateTimeField(required=False)
    recurrence_days_of_week = forms.TypedMultipleChoiceField(
        choices=WEEKDAY_CHOICES,
        coerce=int,
        required=False,
    )

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("is_recurring") and not cleaned.get("recurrence_pattern"):
            self.add_error("recurrence_pattern", "This field is required for recurring bookings.")
        return cleaned

    def to_input(self) -> BookingInput | RecurringBookingInput:
        data = self.cleaned_data
        booking = BookingInput(
            room_id=data["room_id"],
            title=data["title"],
            start=data["start_time"],
            end=data["end_time"],
            description=data["description"],
            guest_emails=data["guest_emails"],
            user_id=data["user_id"],
        )
        if not data["is_recurring"]:
            return booking

        return RecurringBookingInput(
            booking=booking,
            recurrence=RecurrenceRule(
                pattern=data["recurrence_pattern"],
                interval=data["recurrence_interval"] or 1,
                end_date=data["recurrence_end_date"],
                days_of_week=tuple(data["recurrence_days_of_week"]),
            ),
        )


class GuestBookingForm(forms.Form):
    room_id = forms.IntegerField(min_value=1)
    title = forms.CharField(min_length=1, max_length=200)
    description = forms.CharField(required=False)
    start_time = forms.DateTimeField()
    end_time = forms.DateTimeField()
    guest_name = forms.CharField(max_length=120)
    guest_email = forms.EmailField()
    attendees = forms.IntegerField(required=False, min_value=1)

    def to_input(self) -> GuestBookingInput:
        data = self.cleaned_data
        return GuestBookingInput(
            room_id=data["room_id"],
            title=data["title"],
            start=data["start_time"],
            end=data["end_time"],
            guest_name=data["guest_name"],
            guest_email=data["guest_email"],
            description=data["description"],
            attendees=data["attendees"] or 1,
        )


class BookingUpdateForm(BookingFieldsForm):
    """Every field is optional; only keys present in the payload are applied."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            field.required = False

    def clean_title(self) -> str:
        title = self.cleaned_data.get("title", "")
        if "title" in self.data and not title:
            raise ValidationError("Title cannot be empty.")
        return title

    def _present(self, name: str):
        if name not in self.data:
            return None
        return self.cleaned_data.get(name)

    def to_input(self) -> BookingUpdateInput:
        return BookingUpdateInput(
            room_id=self._present("room_id"),
            title=self._present("title"),
            description=self._present("description"),
            start=self._present("start_time"),
            end=self._present("end_time"),
            guest_emails=self._present("guest_emails"),
        )
