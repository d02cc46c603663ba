"""
Permissions Constants: **Single Source of Truth**

Every capability referenced in code (services, views, the workflow
engine's guards) MUST use one of the constants defined here.

Capabilities are granted to roles in exactly one place:
``core.domain.access.ROLE_CAPABILITIES``.  Authorization checks ask
"does this role hold capability X?" and never compare role names
directly.
"""


class CasesPerms:
    """Capabilities for the case workflow."""

    CAN_CREATE_CASE = "cases.can_create_case"
    """Open a new case (ADMIN acts as the clerk)."""

    CAN_ASSIGN_CASE = "cases.can_assign_case"
    """Offer an OPEN case to a caseworker (assign / reassign)."""

    CAN_REVIEW_COMPLETION = "cases.can_review_completion"
    """Approve or reject a caseworker's completion request."""

    CAN_WORK_CASES = "cases.can_work_cases"
    """Be the assignee of a case (accept, reject, request completion)."""

    CAN_ANNOTATE_CASE = "cases.can_annotate_case"
    """Add a manual note to a case's audit log."""

    # ── Scope permissions (data-visibility tiers) ───────────────────
    CAN_SCOPE_ALL_CASES = "cases.can_scope_all_cases"
    """Unrestricted case visibility."""

    CAN_SCOPE_ASSIGNED_CASES = "cases.can_scope_assigned_cases"
    """See only cases currently assigned to this user."""


class CorePerms:
    """Capabilities for core resources."""

    CAN_RECEIVE_COMPLETION_REQUESTS = "core.can_receive_completion_requests"
    """Be notified when a caseworker asks for a case to be completed."""
