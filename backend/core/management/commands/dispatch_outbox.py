"""
Management command: dispatch_outbox
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Delivers pending ``OutboxEvent`` rows (notification requests recorded
by workflow transitions).  Normally the ``on_commit`` hook delivers
them right away; this command picks up whatever that hook missed or
failed on.  Safe to run repeatedly, e.g. from cron.

Usage::

    python manage.py dispatch_outbox
    python manage.py dispatch_outbox --limit 500
"""

from django.core.management.base import BaseCommand, CommandError

from core.constants import OUTBOX_BATCH_SIZE
from core.domain.outbox import OutboxDispatcher
from core.models import OutboxEvent


class Command(BaseCommand):
    help = "Deliver pending outbox events (workflow notifications)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=OUTBOX_BATCH_SIZE,
            help=f"Maximum number of events to deliver (default {OUTBOX_BATCH_SIZE}).",
        )

    def handle(self, *args, **options):
        limit = options["limit"]
        if limit < 1:
            raise CommandError("--limit must be a positive integer.")

        pending = OutboxEvent.objects.filter(dispatched_at__isnull=True).count()
        self.stdout.write(self.style.MIGRATE_HEADING(
            f"{pending} pending outbox event(s)."
        ))

        delivered = OutboxDispatcher().dispatch_pending(limit=limit)
        remaining = OutboxEvent.objects.filter(dispatched_at__isnull=True).count()

        if remaining:
            self.stdout.write(self.style.WARNING(
                f"Delivered {delivered}; {remaining} event(s) still pending."
            ))
        else:
            self.stdout.write(self.style.SUCCESS(f"Delivered {delivered} event(s)."))
