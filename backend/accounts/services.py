"""
Accounts app services.

``UserIdentityProvider`` is the ORM-backed ``IdentityProvider`` the
case workflow engine resolves callers and assignment targets through.
"""

from __future__ import annotations

import logging
from typing import Any

from core.domain.identity import UserView

from .models import User

logger = logging.getLogger(__name__)


class UserIdentityProvider:
    """Resolve user ids to read-only ``UserView`` objects."""

    def resolve(self, user_id: Any) -> UserView | None:
        try:
            user = User.objects.only("id", "role", "is_active").get(pk=user_id)
        except (User.DoesNotExist, ValueError, TypeError):
            return None
        view = UserView(id=user.pk, role=user.workflow_role, is_active=user.is_active)
        if view.role is None and user.role:
            logger.warning("User %s has unknown role %r; treating as no role.", user.pk, user.role)
        return view
