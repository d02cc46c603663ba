"""
core.domain.outbox: Transactional outbox for workflow side effects.

Workflow transitions never send notifications themselves.  Their event
sink stores each ``NotificationRequest`` as an ``OutboxEvent`` row in
the **same** database transaction as the case update, so a rolled-back
transition leaves no trace and a committed one can never lose its
notifications.  After commit, ``OutboxDispatcher`` turns the pending rows
into ``Notification`` records.

Delivery is at-least-once: a row is marked dispatched only after its
notifications were created; a failing row keeps ``dispatched_at = NULL``
and records the attempt so the next run (``manage.py dispatch_outbox``
or the next ``on_commit`` hook) retries it.

Payload format for ``OutboxEvent.Kind.NOTIFICATION``::

    {
        "event_type": "case_assigned",
        "case_id": 42,
        "case_title": "Lease dispute",
        "actor_id": 7,
        "recipient_ids": [12],
        "recipient_roles": [],
    }
"""

from __future__ import annotations

import logging
from typing import Any

from django.apps import apps
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from core.constants import OUTBOX_BATCH_SIZE
from core.domain.identity import UserRole
from core.domain.notifications import NotificationService

logger = logging.getLogger(__name__)


class OutboxDispatcher:
    """Delivers pending ``OutboxEvent`` rows, oldest first."""

    def __init__(self, batch_size: int = OUTBOX_BATCH_SIZE) -> None:
        self.batch_size = batch_size

    def dispatch_pending(self, limit: int | None = None) -> int:
        """
        Deliver up to ``limit`` pending events.

        Returns:
            The number of events successfully delivered.
        """
        from core.models import OutboxEvent

        limit = self.batch_size if limit is None else limit
        pending_ids = list(
            OutboxEvent.objects
            .filter(dispatched_at__isnull=True)
            .order_by("created_at", "id")
            .values_list("id", flat=True)[:limit]
        )

        delivered = 0
        for event_id in pending_ids:
            if self._dispatch_one(event_id):
                delivered += 1
        return delivered

    def _dispatch_one(self, event_id: int) -> bool:
        from core.models import OutboxEvent

        try:
            with transaction.atomic():
                event = (
                    OutboxEvent.objects
                    .select_for_update()
                    .filter(pk=event_id, dispatched_at__isnull=True)
                    .first()
                )
                if event is None:
                    # Delivered by a concurrent dispatcher.
                    return False
                self._deliver(event)
                event.dispatched_at = timezone.now()
                event.attempts += 1
                event.last_error = ""
                event.save(update_fields=["dispatched_at", "attempts", "last_error"])
        except Exception as exc:
            logger.exception("Outbox event %s failed to deliver", event_id)
            OutboxEvent.objects.filter(pk=event_id, dispatched_at__isnull=True).update(
                attempts=F("attempts") + 1,
                last_error=f"{type(exc).__name__}: {exc}",
            )
            return False

        logger.info("Outbox event %s [%s] delivered", event_id, event.kind)
        return True

    def _deliver(self, event: Any) -> None:
        from core.models import OutboxEvent

        if event.kind == OutboxEvent.Kind.NOTIFICATION:
            self._deliver_notification(event.payload)
        else:
            raise ValueError(f"Unknown outbox event kind: {event.kind!r}")

    @staticmethod
    def _deliver_notification(payload: dict[str, Any]) -> None:
        User = apps.get_model("accounts", "User")
        Case = apps.get_model("cases", "Case")

        recipient_ids = payload.get("recipient_ids") or []
        recipient_roles = payload.get("recipient_roles") or []
        actor_id = payload.get("actor_id")

        audience = Q(pk__in=recipient_ids)
        if recipient_roles:
            audience |= Q(role__in=UserRole.stored_names(recipient_roles))
        recipients = (
            User.objects
            .filter(audience, is_active=True)
            .exclude(pk=actor_id)
            .order_by("pk")
        )

        actor = User.objects.filter(pk=actor_id).first()
        related_case = Case.objects.filter(pk=payload.get("case_id")).first()

        NotificationService.create(
            actor=actor,
            recipients=list(recipients),
            event_type=payload["event_type"],
            payload=payload,
            related_object=related_case,
        )


def schedule_dispatch() -> None:
    """
    Run the dispatcher once the surrounding transaction commits.

    A failing dispatch is logged by Django and never reaches the caller
    of the committed transition; its rows stay pending for
    ``dispatch_outbox``.
    """
    transaction.on_commit(lambda: OutboxDispatcher().dispatch_pending(), robust=True)
