from __future__ import annotations

from django.core.management.base import BaseCommand

from bookings.reminders import send_due_reminders


class Command(BaseCommand):
    help = "E-mail reminders for bookings that start soon (run from cron every few minutes)."

    def handle(self, *args, **options):
        result = send_due_reminders()
        style = self.style.SUCCESS if not result["failed"] else self.style.WARNING
        self.stdout.write(
            style(
                f"Reminders: sent={result['sent']} skipped={result['skipped']} failed={result['failed']}"
            )
        )
