"""
core.domain.notifications: Notification creation helper.

Centralises notification creation so every delivery path uses one
consistent entry-point rather than directly constructing
``Notification`` objects.

Design decisions
----------------
* **Never called inside a workflow transaction**: the workflow records
  notification requests in the outbox; ``core.domain.outbox`` calls
  ``NotificationService.create`` only after the case change committed.
* **Supports multiple recipients**: pass a single ``User`` or an
  iterable of ``User`` instances.
* **Generic relation**: ``related_object`` is optional; if provided
  its ``ContentType`` and PK are stored via the ``Notification`` model's
  ``GenericForeignKey``.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.create(
        actor=manager,
        recipients=[caseworker],
        event_type="case_assigned",
        payload={"case_id": case.id, "case_title": case.title},
        related_object=case,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import models

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → human-readable templates ───────────────────────────
# Templates are formatted with the notification payload; missing keys
# fall back to the raw template text.
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # event_type: (title_template, message_template)
    "case_assigned":             ("New Case Assigned",        "Case #{case_id} \"{case_title}\" has been offered to you."),
    "case_accepted":             ("Case Accepted",            "Case #{case_id} \"{case_title}\" was accepted by its caseworker."),
    "case_rejected":             ("Case Rejected",            "Case #{case_id} \"{case_title}\" was declined and is open for reassignment."),
    "case_completion_requested": ("Completion Requested",     "Case #{case_id} \"{case_title}\" is awaiting completion approval."),
    "case_completion_approved":  ("Case Completed",           "Completion of case #{case_id} \"{case_title}\" was approved."),
    "case_completion_rejected":  ("Completion Rejected",      "Completion of case #{case_id} \"{case_title}\" was rejected; work continues."),
}


def render_event(event_type: str, payload: dict[str, Any] | None = None) -> tuple[str, str]:
    """Return the ``(title, message)`` pair for ``event_type``."""
    title, message = _EVENT_TEMPLATES.get(
        event_type,
        (event_type.replace("_", " ").title(), f"Event: {event_type}"),
    )
    if payload:
        try:
            message = message.format(**payload)
        except (KeyError, IndexError):
            logger.debug("Payload for %s lacks template keys: %s", event_type, sorted(payload))
    return title, message


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods; no instance state is needed.
    """

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            actor:          The user who performed the action (used for
                            logging only).
            recipients:     A single ``User`` or iterable of ``User``
                            instances.
            event_type:     Key into ``_EVENT_TEMPLATES``.  If unknown
                            the raw event_type is used as title.
            payload:        Context dict used for template interpolation.
            related_object: Optional model instance linked via
                            ``GenericForeignKey``.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # lazy import, avoids circular deps

        # Normalise recipients to a list
        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for event_type=%s by actor=%s",
                event_type,
                actor,
            )
            return []

        title, message = render_event(event_type, payload)

        # Resolve GenericFK fields
        content_type = None
        object_id = None
        if related_object is not None:
            content_type = ContentType.objects.get_for_model(related_object)
            object_id = related_object.pk

        notifications = Notification.objects.bulk_create(
            [
                Notification(
                    recipient=recipient,
                    event_type=event_type,
                    title=title,
                    message=message,
                    content_type=content_type,
                    object_id=object_id,
                )
                for recipient in recipients
            ]
        )

        logger.info(
            "Created %d notification(s) [%s] by actor=%s",
            len(notifications),
            event_type,
            actor,
        )
        return notifications
