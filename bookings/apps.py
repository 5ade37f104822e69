from django.apps import AppConfig


class BookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bookings"
    verbose_name = "Room bookings"

    def ready(self) -> None:
        # Connect the e-mail receivers to the booking signals.
        from . import emails  # noqa: F401
