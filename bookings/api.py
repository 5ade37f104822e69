from __future__ import annotations

import json
from datetime import datetime

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .exceptions import BookingError, ConflictError
from .forms import BookingCreateForm, BookingUpdateForm, GuestBookingForm
from .models import Booking, Room
from .services import (
    RecurringBookingInput,
    cancel_booking,
    create_booking,
    create_guest_booking,
    create_recurring_booking,
    get_booking,
    list_bookings,
    update_booking,
)


def serialize_booking(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "room": {"id": booking.room_id, "name": booking.room.name},
        "user_id": booking.user_id,
        "organizer_name": booking.organizer_name,
        "title": booking.title,
        "description": booking.description,
        "start_time": booking.start_time.isoformat(),
        "end_time": booking.end_time.isoformat(),
        "status": booking.status,
        "guest_emails": booking.guest_emails,
        "is_recurring": booking.is_recurring,
        "recurrence_pattern": booking.recurrence_pattern or None,
        "recurrence_interval": booking.recurrence_interval,
        "recurrence_end_date": (
            booking.recurrence_end_date.isoformat() if booking.recurrence_end_date else None
        ),
        "recurrence_days_of_week": booking.recurrence_days_of_week,
        "parent_id": booking.parent_id,
    }


def _parse_payload(request) -> dict | None:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _parse_instant(value: str) -> datetime | None:
    parsed = parse_datetime(value)
    if parsed is not None and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _invalid_form(form) -> JsonResponse:
    return JsonResponse({"error": "Invalid input.", "details": form.errors.get_json_data()}, status=400)


def _booking_error(exc: BookingError) -> JsonResponse:
    body = {"error": str(exc), "code": exc.code}
    if not isinstance(exc, ConflictError):
        return JsonResponse(body, status=400)

    body["conflicting_booking_id"] = exc.booking.id if exc.booking is not None else None
    if exc.occurrence_index is not None:
        body["occurrence_index"] = exc.occurrence_index
        body["occurrence_start"] = exc.occurrence_start.isoformat()
    return JsonResponse(body, status=409)


@require_http_methods(["GET", "POST"])
def bookings_api(request):
    """
    GET  /api/bookings/?room_id=&user_id=&start=&end=
    POST /api/bookings/

    POST payload (JSON):
      - room_id, title, start_time, end_time (ISO 8601)
      - description, guest_emails, user_id (administrators only)
      - is_recurring, recurrence_pattern (DAILY|WEEKLY|MONTHLY),
        recurrence_interval, recurrence_end_date, recurrence_days_of_week (0=Sunday)
    """
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Authentication required."}, status=401)

    if request.method == "GET":
        return _list_bookings(request)
    return _create_booking(request)


def _list_bookings(request):
    filters = {}
    for name in ("room_id", "user_id"):
        value = request.GET.get(name, "").strip()
        if value:
            if not value.isdigit():
                return JsonResponse({"error": f"Invalid {name}. Expected an integer."}, status=400)
            filters[name] = int(value)

    for name in ("start", "end"):
        value = request.GET.get(name, "").strip()
        if value:
            try:
                parsed = _parse_instant(value)
            except ValueError:
                parsed = None
            if parsed is None:
                return JsonResponse({"error": f"Invalid {name}. Expected an ISO 8601 datetime."}, status=400)
            filters[name] = parsed

    bookings = list_bookings(**filters)
    return JsonResponse({"bookings": [serialize_booking(b) for b in bookings]})


def _create_booking(request):
    payload = _parse_payload(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON payload."}, status=400)

    form = BookingCreateForm(payload)
    if not form.is_valid():
        return _invalid_form(form)
    data = form.to_input()

    try:
        if isinstance(data, RecurringBookingInput):
            series = create_recurring_booking(user=request.user, data=data)
        else:
            booking = create_booking(user=request.user, data=data)
    except BookingError as exc:
        return _booking_error(exc)
    except Room.DoesNotExist:
        return JsonResponse({"error": "Room not found."}, status=404)
    except get_user_model().DoesNotExist:
        return JsonResponse({"error": "User not found."}, status=404)

    if isinstance(data, RecurringBookingInput):
        return JsonResponse(
            {
                "success": True,
                "bookings": [serialize_booking(b) for b in series.bookings],
                "count": series.count,
            },
            status=201,
        )
    return JsonResponse({"success": True, "booking": serialize_booking(booking)}, status=201)


@require_GET
def booking_detail_api(request, booking_id: int):
    """
    GET /api/bookings/<id>/
    """
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Authentication required."}, status=401)

    try:
        booking = get_booking(user=request.user, booking_id=booking_id)
    except Booking.DoesNotExist:
        return JsonResponse({"error": "Booking not found."}, status=404)
    except PermissionDenied:
        return JsonResponse({"error": "You do not have permission to view this booking."}, status=403)

    return JsonResponse({"booking": serialize_booking(booking)})


@require_POST
def update_booking_api(request, booking_id: int):
    """
    POST /api/bookings/<id>/update/
    Payload (JSON), every key optional:
      - room_id, title, description, start_time, end_time, guest_emails
    """
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Authentication required."}, status=401)

    payload = _parse_payload(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON payload."}, status=400)

    form = BookingUpdateForm(payload)
    if not form.is_valid():
        return _invalid_form(form)

    try:
        booking = update_booking(user=request.user, booking_id=booking_id, changes=form.to_input())
    except Booking.DoesNotExist:
        return JsonResponse({"error": "Booking not found."}, status=404)
    except Room.DoesNotExist:
        return JsonResponse({"error": "Room not found."}, status=404)
    except PermissionDenied:
        return JsonResponse({"error": "You do not have permission to edit this booking."}, status=403)
    except BookingError as exc:
        return _booking_error(exc)

    return JsonResponse(
        {
            "success": True,
            "booking": serialize_booking(booking),
            "message": "Booking updated successfully.",
        }
    )


@require_POST
def cancel_booking_api(request, booking_id: int):
    """
    POST /api/bookings/<id>/cancel/
    """
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Authentication required."}, status=401)

    try:
        cancel_booking(user=request.user, booking_id=booking_id)
    except Booking.DoesNotExist:
        return JsonResponse({"error": "Booking not found."}, status=404)
    except PermissionDenied:
        return JsonResponse(
            {"error": "You do not have permission to cancel this booking."},
            status=403,
        )

    return JsonResponse({"success": True, "message": "Booking cancelled."})


@require_POST
def guest_booking_api(request):
    """
    POST /api/reservations/
    Public booking without an account.
    Payload (JSON):
      - room_id, title, start_time, end_time, guest_name, guest_email
      - description, attendees
    """
    payload = _parse_payload(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON payload."}, status=400)

    form = GuestBookingForm(payload)
    if not form.is_valid():
        return _invalid_form(form)

    try:
        booking = create_guest_booking(data=form.to_input())
    except BookingError as exc:
        return _booking_error(exc)
    except Room.DoesNotExist:
        return JsonResponse({"error": "Room not found."}, status=404)

    return JsonResponse({"success": True, "booking": serialize_booking(booking)}, status=201)
