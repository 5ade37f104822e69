from django.urls import path

from .api import (
    booking_detail_api,
    bookings_api,
    cancel_booking_api,
    guest_booking_api,
    update_booking_api,
)


app_name = "bookings"

urlpatterns = [
    path("api/bookings/", bookings_api, name="bookings_api"),
    path("api/bookings/<int:booking_id>/", booking_detail_api, name="booking_detail_api"),
    path(
        "api/bookings/<int:booking_id>/update/",
        update_booking_api,
        name="update_booking_api",
    ),
    path(
        "api/bookings/<int:booking_id>/cancel/",
        cancel_booking_api,
        name="cancel_booking_api",
    ),
    path("api/reservations/", guest_booking_api, name="guest_booking_api"),
]
