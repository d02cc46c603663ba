"""
Cases app models.

Covers the assignment-centric case lifecycle: a case is opened
unassigned, offered to a caseworker, accepted or declined, worked on,
submitted for completion and finally approved (or sent back).
"""

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseStatus(models.TextChoices):
    """Workflow states (see ``cases.workflow.transitions``)."""

    OPEN = "OPEN", "Open (unassigned)"
    PENDING = "PENDING", "Pending Acceptance"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    PENDING_COMPLETION = "PENDING_COMPLETION", "Pending Completion Review"
    COMPLETED = "COMPLETED", "Completed"


class CasePriority(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    URGENT = "URGENT", "Urgent"


class CaseLogAction(models.TextChoices):
    """Labels recorded in the audit trail."""

    CREATED = "created", "Created"
    ASSIGNED = "assigned", "Assigned"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    COMPLETION_REQUESTED = "completion_requested", "Completion Requested"
    APPROVED = "approved", "Approved"
    COMPLETION_REJECTED = "completion_rejected", "Completion Rejected"
    NOTE = "note", "Manual Note"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    Central entity of the system: a legal/administrative case.

    * ``assigned_to`` is set exactly while the case is PENDING,
      IN_PROGRESS or PENDING_COMPLETION.  On approval the former
      assignee moves to ``metadata["former_assignee_id"]``.
    * ``version`` increases by one on every workflow transition and backs
      the compare-and-swap write in ``cases.stores.OrmCaseStore``.
    """

    title = models.CharField(
        max_length=255,
        verbose_name="Case Title",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )
    priority = models.CharField(
        max_length=10,
        choices=CasePriority.choices,
        default=CasePriority.MEDIUM,
        verbose_name="Priority",
        db_index=True,
    )
    status = models.CharField(
        max_length=30,
        choices=CaseStatus.choices,
        default=CaseStatus.OPEN,
        verbose_name="Current Status",
        db_index=True,
    )

    # ── Key personnel ───────────────────────────────────────────────
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_cases",
        verbose_name="Created By",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assigned_cases",
        verbose_name="Assigned Caseworker",
    )

    due_date = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Due Date",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Metadata",
    )
    version = models.PositiveIntegerField(
        default=0,
        verbose_name="Version",
        help_text="Incremented by every workflow transition.",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["assigned_to", "status"], name="cases_case_assignee_status_idx"),
        ]

    def __str__(self):
        return f"Case #{self.pk}: {self.title}"

    @property
    def is_open(self) -> bool:
        """Return True while the case has not been completed."""
        return self.status != CaseStatus.COMPLETED

    @property
    def is_overdue(self) -> bool:
        """Return True if the due date has passed on an unfinished case."""
        if self.due_date is None:
            return False
        return self.is_open and timezone.now() > self.due_date


class CaseLog(models.Model):
    """
    Immutable audit trail of a case.

    One row per successful workflow transition, plus one for creation
    and one per manual note.  Rows are never updated or deleted.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="logs",
        verbose_name="Case",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="case_logs",
        verbose_name="Actor",
    )
    action = models.CharField(
        max_length=30,
        choices=CaseLogAction.choices,
        verbose_name="Action",
    )
    details = models.TextField(
        blank=True,
        default="",
        verbose_name="Details",
    )
    from_status = models.CharField(
        max_length=30,
        choices=CaseStatus.choices,
        blank=True,
        default="",
        verbose_name="Previous Status",
    )
    to_status = models.CharField(
        max_length=30,
        choices=CaseStatus.choices,
        blank=True,
        default="",
        verbose_name="New Status",
    )
    created_at = models.DateTimeField(
        default=timezone.now,
        verbose_name="Timestamp",
        db_index=True,
    )

    class Meta:
        verbose_name = "Case Log"
        verbose_name_plural = "Case Logs"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Case #{self.case_id}: {self.action} by {self.user_id}"
