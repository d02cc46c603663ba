"""
Core app services.

``NotificationQueryService`` backs the notification inbox endpoints.
Creating notifications is ``core.domain.notifications.NotificationService``;
it is driven by the outbox dispatcher, never by views.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db.models import QuerySet

from core.domain.exceptions import NotFound

from .models import Notification

logger = logging.getLogger(__name__)


class NotificationQueryService:
    """Read and acknowledge the authenticated user's notifications."""

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        queryset = Notification.objects.filter(recipient=self.user).select_related("content_type")
        if unread_only:
            queryset = queryset.filter(is_read=False)
        return queryset

    def mark_as_read(self, notification_id: Any) -> Notification:
        try:
            notification = Notification.objects.get(pk=notification_id, recipient=self.user)
        except (Notification.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Notification with id {notification_id} not found.")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification

    def mark_all_as_read(self) -> int:
        updated = Notification.objects.filter(recipient=self.user, is_read=False).update(is_read=True)
        logger.debug("Marked %s notification(s) read for user %s", updated, self.user.pk)
        return updated
