"""
Sweep PENDING supervisor overrides past their deadline into EXPIRED.

Meant to run periodically (cron). Approval also expires stale requests
lazily, so the sweep only keeps the override list tidy.
"""

from django.core.management.base import BaseCommand

from pos.services import OverrideService


class Command(BaseCommand):
    help = "Expire pending supervisor overrides whose approval window has passed"

    def handle(self, *args, **options):
        expired = OverrideService.expire_stale_overrides()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} override request(s)"))
