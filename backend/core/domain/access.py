"""
core.domain.access: Role capability sets and permission-scoped selectors.

╔══════════════════════════════════════════════════════════════════╗
║  Authorization is derived ONCE per role, here.                  ║
║  Services and workflow guards call ``role_has_capability`` or   ║
║  ``require_capability``; they never compare role names.         ║
╚══════════════════════════════════════════════════════════════════╝

Architecture overview
---------------------
    ┌─────────┐      ┌────────────────┐      ┌──────────────────┐
    │  View   │─────▶│  App service   │─────▶│ core.domain      │
    │ (thin)  │      │ (owns logic)   │      │   .access        │
    └─────────┘      └────────────────┘      │ (shared helpers) │
                                             └──────────────────┘

Usage in an app's service layer::

    from core.domain.access import apply_permission_scope

    CASE_SCOPE_RULES = [
        (CasesPerms.CAN_SCOPE_ALL_CASES,      lambda qs, u: qs),
        (CasesPerms.CAN_SCOPE_ASSIGNED_CASES, lambda qs, u: qs.filter(assigned_to=u)),
    ]

    qs = apply_permission_scope(Case.objects.all(), user, scope_rules=CASE_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable

from django.db.models import QuerySet

from core.domain.identity import UserRole
from core.permissions_constants import CasesPerms, CorePerms

if TYPE_CHECKING:
    from accounts.models import User

# Type alias for a scope filter function.
# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# Type alias for a single scope rule: (capability, filter_fn).
ScopeRule = tuple[str, ScopeFilter]


#: The single capability table.  A role holds exactly the listed
#: capabilities; a user without a role holds none.
ROLE_CAPABILITIES: dict[UserRole, frozenset[str]] = {
    UserRole.ADMIN: frozenset({
        CasesPerms.CAN_CREATE_CASE,
        CasesPerms.CAN_ASSIGN_CASE,
        CasesPerms.CAN_REVIEW_COMPLETION,
        CasesPerms.CAN_ANNOTATE_CASE,
        CasesPerms.CAN_SCOPE_ALL_CASES,
    }),
    UserRole.MANAGER: frozenset({
        CasesPerms.CAN_CREATE_CASE,
        CasesPerms.CAN_ASSIGN_CASE,
        CasesPerms.CAN_REVIEW_COMPLETION,
        CasesPerms.CAN_ANNOTATE_CASE,
        CasesPerms.CAN_SCOPE_ALL_CASES,
        CorePerms.CAN_RECEIVE_COMPLETION_REQUESTS,
    }),
    UserRole.CASEWORKER: frozenset({
        CasesPerms.CAN_WORK_CASES,
        CasesPerms.CAN_ANNOTATE_CASE,
        CasesPerms.CAN_SCOPE_ASSIGNED_CASES,
    }),
}


def capabilities_for(role: UserRole | str | None) -> frozenset[str]:
    """Return the capability set of ``role`` (empty for unknown roles)."""
    normalized = UserRole.normalize(role) if role is not None else None
    if normalized is None:
        return frozenset()
    return ROLE_CAPABILITIES.get(normalized, frozenset())


def role_has_capability(role: UserRole | str | None, capability: str) -> bool:
    """Return True if ``role`` holds ``capability``."""
    return capability in capabilities_for(role)


def roles_with_capability(capability: str) -> tuple[UserRole, ...]:
    """Return every role that holds ``capability``, in declaration order."""
    return tuple(
        role for role, caps in ROLE_CAPABILITIES.items() if capability in caps
    )


def user_has_capability(user: Any, capability: str) -> bool:
    """
    Return True if an active ``user`` holds ``capability`` through its role.

    Superusers hold every capability.
    """
    if user is None or not getattr(user, "is_active", False):
        return False
    if getattr(user, "is_superuser", False):
        return True
    return role_has_capability(getattr(user, "role", None), capability)


def apply_permission_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: Iterable[ScopeRule],
    default: str = "none",
) -> QuerySet:
    """
    Apply the first matching capability-based scope rule.

    Rules are checked **in order**; the first match wins.  Order rules from
    broadest to narrowest.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_rules:  Ordered list of ``(capability, filter_fn)`` tuples.
        default:      ``"none"`` (default) → empty queryset when nothing
                      matches; ``"all"`` → return unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    for capability, filter_fn in scope_rules:
        if user_has_capability(user, capability):
            return filter_fn(queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_capability(user: Any, *capabilities: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` unless the user holds at least
    one of ``capabilities`` (OR-logic).

    Example::

        require_capability(user, CasesPerms.CAN_CREATE_CASE)
    """
    from core.domain.exceptions import PermissionDenied

    for capability in capabilities:
        if user_has_capability(user, capability):
            return
    raise PermissionDenied(
        message or f"Missing required capability: {', '.join(capabilities)}."
    )
