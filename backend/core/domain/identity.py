"""
core.domain.identity: Caller identity as seen by the workflow engine.

The engine never touches the ``User`` model.  It asks an
``IdentityProvider`` to resolve a user id into a read-only ``UserView``
(id, role, active flag).  ``accounts.services.UserIdentityProvider`` is
the ORM-backed implementation; tests use in-memory providers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from django.db import models


class UserRole(models.TextChoices):
    """The three roles the workflow distinguishes."""

    ADMIN = "ADMIN", "Administrator"
    MANAGER = "MANAGER", "Manager / Chair"
    CASEWORKER = "CASEWORKER", "Caseworker"

    @classmethod
    def normalize(cls, value: str | None) -> "UserRole | None":
        """
        Map a stored or legacy role name onto a ``UserRole``.

        Older records use ``CLERK``/``CHAIR``/``USER``; unknown names
        resolve to ``None`` (no capabilities at all).
        """
        if value is None:
            return None
        key = str(value).strip().upper()
        key = _LEGACY_ROLE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None

    @classmethod
    def stored_names(cls, roles) -> list[str]:
        """Every stored role name (current or legacy) that maps onto ``roles``."""
        wanted = {cls.normalize(role) for role in roles} - {None}
        names = [role.value for role in wanted]
        names += [legacy for legacy, current in _LEGACY_ROLE_ALIASES.items() if current in wanted]
        return sorted(names)


_LEGACY_ROLE_ALIASES: dict[str, str] = {
    "CLERK": "ADMIN",
    "CHAIR": "MANAGER",
    "USER": "CASEWORKER",
}


@dataclass(frozen=True)
class UserView:
    """Read-only reference data for one user."""

    id: Any
    role: UserRole | None
    is_active: bool = True


class IdentityProvider(Protocol):
    """Resolves a user id to a ``UserView`` (or ``None`` if unknown)."""

    def resolve(self, user_id: Any) -> UserView | None:
        ...
