"""
Core app models.

Provides abstract base models and the cross-app delivery tables
(notifications and the transactional outbox).
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class Notification(TimeStampedModel):
    """
    System notification sent to a user about a case event (assignment,
    acceptance, completion request, approval, ...).

    Uses a GenericForeignKey so any model instance can be the *source* of
    a notification.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    event_type = models.CharField(
        max_length=64,
        blank=True,
        default="",
        verbose_name="Event Type",
        db_index=True,
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    is_read = models.BooleanField(default=False, verbose_name="Read")

    # Generic relation to the object that triggered the notification
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        verbose_name="Related Content Type",
    )
    object_id = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name="Related Object ID",
    )
    content_object = GenericForeignKey("content_type", "object_id")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="core_notif_recipient_read_idx"),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.title}"


class OutboxEvent(models.Model):
    """
    A side-effect request recorded in the same transaction as the state
    change that produced it.

    Rows are written by the workflow's event sink and delivered after
    commit by ``core.domain.outbox.OutboxDispatcher``.  A row with
    ``dispatched_at`` still ``NULL`` is pending; failed deliveries keep
    the row pending and record the error.
    """

    class Kind(models.TextChoices):
        NOTIFICATION = "notification", "Notification Request"

    kind = models.CharField(
        max_length=32,
        choices=Kind.choices,
        verbose_name="Kind",
    )
    payload = models.JSONField(
        default=dict,
        verbose_name="Payload",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    dispatched_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Dispatched At",
        db_index=True,
    )
    attempts = models.PositiveIntegerField(
        default=0,
        verbose_name="Delivery Attempts",
    )
    last_error = models.TextField(
        blank=True,
        default="",
        verbose_name="Last Error",
    )

    class Meta:
        verbose_name = "Outbox Event"
        verbose_name_plural = "Outbox Events"
        ordering = ["created_at", "id"]

    def __str__(self):
        state = "dispatched" if self.dispatched_at else "pending"
        return f"Outbox #{self.pk} [{self.kind}] ({state})"

    @property
    def is_pending(self) -> bool:
        return self.dispatched_at is None
