"""
Accounts app models.

A custom ``User`` extending Django's ``AbstractUser`` with a single
workflow role.  What a role may do is not stored here; capabilities are
derived from ``core.domain.access.ROLE_CAPABILITIES``.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models

from core.domain.access import capabilities_for
from core.domain.identity import UserRole


class User(AbstractUser):
    """
    Custom user model for the case-tracking system.

    Login is supported via either ``username`` or ``email`` together
    with the password (see ``accounts.backends``).

    Each user holds at most **one** role.  Rows created before the
    current role names may still carry ``CLERK``/``CHAIR``/``USER``;
    ``workflow_role`` normalises them.
    """

    role = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Role",
        help_text="ADMIN, MANAGER or CASEWORKER.",
        db_index=True,
    )

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        role = self.workflow_role
        return f"{self.username} ({role.label if role else 'No Role'})"

    # ── Role helpers ─────────────────────────────────────────────────

    @property
    def workflow_role(self) -> UserRole | None:
        """The normalised role, or ``None`` when unset or unknown."""
        return UserRole.normalize(self.role or None)

    def has_role(self, role: UserRole | str) -> bool:
        return self.workflow_role is not None and self.workflow_role == UserRole.normalize(role)

    @property
    def capabilities(self) -> frozenset[str]:
        if not self.is_active:
            return frozenset()
        return capabilities_for(self.workflow_role)

    @property
    def permissions_list(self) -> list[str]:
        """
        Sorted capability strings, for clients that render UI
        conditionally on what the user may do.
        """
        return sorted(self.capabilities)
