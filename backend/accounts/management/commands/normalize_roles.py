"""
Management command: normalize_roles
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Rewrites legacy role names on ``User`` rows to the current ones:

    CLERK → ADMIN
    CHAIR → MANAGER
    USER  → CASEWORKER

Role resolution already maps the legacy names at read time; running
this makes the stored data match.  The command is **idempotent** and
reports (but leaves untouched) users whose role is not recognised.

Usage::

    python manage.py normalize_roles [--dry-run]
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import User
from core.domain.identity import UserRole


class Command(BaseCommand):
    help = "Map legacy role names (CLERK/CHAIR/USER) onto ADMIN/MANAGER/CASEWORKER."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would change without writing.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        self.stdout.write(self.style.MIGRATE_HEADING("Normalising user roles..."))

        changed = 0
        with transaction.atomic():
            for user in User.objects.exclude(role="").order_by("pk"):
                role = UserRole.normalize(user.role)
                if role is None:
                    self.stdout.write(self.style.WARNING(
                        f"  ⚠ {user.username}: unknown role {user.role!r} left as is"
                    ))
                    continue
                if user.role == role.value:
                    continue
                self.stdout.write(f"  {user.username}: {user.role} → {role.value}")
                changed += 1
                if not dry_run:
                    user.role = role.value
                    user.save(update_fields=["role"])

        verb = "Would update" if dry_run else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} {changed} user(s)."))
