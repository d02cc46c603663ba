"""
Transition guards.

Every guard is a pure function ``(case, caller, workload) -> Decision``:
no I/O, no mutation.  Anything a guard needs beyond those three values
(expected states, the assignment target, the cap) is bound when the
guard is built, e.g. ``require_status(CaseStatus.OPEN)``.

A transition's guards are combined by conjunction with ``check_all``;
the first ``Deny`` wins.  Denial reasons form a closed set and each one
maps to exactly one exception in ``core.domain.exceptions``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Union

from core.domain.access import role_has_capability
from core.domain.exceptions import (
    DomainError,
    GuardReason,
    GuardViolation,
    InvalidTransition,
    PermissionDenied,
    WorkloadExceeded,
)
from core.domain.identity import UserRole, UserView

from .records import CaseRecord, WorkloadSnapshot


class DenialReason(str, enum.Enum):
    WRONG_STATE = "wrong_state"
    ROLE_NOT_PERMITTED = "role_not_permitted"
    NOT_ASSIGNEE = "not_assignee"
    TARGET_NOT_FOUND = "target_not_found"
    TARGET_INACTIVE = "target_inactive"
    TARGET_WRONG_ROLE = "target_wrong_role"
    WORKLOAD_EXCEEDED = "workload_exceeded"


_TARGET_REASONS = {
    DenialReason.TARGET_NOT_FOUND: GuardReason.TARGET_NOT_FOUND,
    DenialReason.TARGET_INACTIVE: GuardReason.TARGET_INACTIVE,
    DenialReason.TARGET_WRONG_ROLE: GuardReason.TARGET_WRONG_ROLE,
}


class Allow:
    """The guard passed."""

    __slots__ = ()

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "ALLOW"


ALLOW = Allow()


@dataclass(frozen=True)
class Deny:
    """The guard failed; ``details`` carries reason-specific data."""

    reason: DenialReason
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return False

    def to_exception(self) -> DomainError:
        if self.reason is DenialReason.WRONG_STATE:
            return InvalidTransition(
                current=self.details.get("current"),
                expected=self.details.get("expected", ()),
                action=self.details.get("action"),
            )
        if self.reason in (DenialReason.ROLE_NOT_PERMITTED, DenialReason.NOT_ASSIGNEE):
            return PermissionDenied(self.message)
        if self.reason is DenialReason.WORKLOAD_EXCEEDED:
            return WorkloadExceeded(
                count=self.details["count"],
                cap=self.details["cap"],
                message=self.message,
            )
        return GuardViolation(_TARGET_REASONS[self.reason], self.message)


Decision = Union[Allow, Deny]
Guard = Callable[[CaseRecord, UserView, Union[WorkloadSnapshot, None]], Decision]


def check_all(
    guards: Iterable[Guard],
    case: CaseRecord,
    caller: UserView,
    workload: WorkloadSnapshot | None = None,
) -> Decision:
    """Evaluate ``guards`` in order and return the first denial, else ``ALLOW``."""
    for guard in guards:
        decision = guard(case, caller, workload)
        if not decision:
            return decision
    return ALLOW


# ── Guard factories ──────────────────────────────────────────────────


def require_status(*expected: str, action: str | None = None) -> Guard:
    """The case must currently be in one of ``expected``."""
    expected_states = tuple(str(s) for s in expected)

    def guard(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
        if str(case.status) in expected_states:
            return ALLOW
        return Deny(
            DenialReason.WRONG_STATE,
            f"Case {case.id} is {case.status}; expected {', '.join(expected_states)}.",
            {"current": str(case.status), "expected": expected_states, "action": action},
        )

    return guard


def require_capability(capability: str) -> Guard:
    """The caller's role must hold ``capability``."""

    def guard(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
        if role_has_capability(caller.role, capability):
            return ALLOW
        role = caller.role.value if caller.role else "no role"
        return Deny(
            DenialReason.ROLE_NOT_PERMITTED,
            f"Role '{role}' may not perform this action.",
            {"capability": capability},
        )

    return guard


def caller_is_assignee(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
    """Only the case's current assignee may act on their own offer/work."""
    if case.assignee_id is not None and case.assignee_id == caller.id:
        return ALLOW
    return Deny(
        DenialReason.NOT_ASSIGNEE,
        f"Case {case.id} is not assigned to you.",
        {"assignee_id": case.assignee_id},
    )


def case_is_unassigned(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
    """A case can only be (re)assigned while nobody holds it."""
    if case.assignee_id is None:
        return ALLOW
    return Deny(
        DenialReason.WRONG_STATE,
        f"Case {case.id} is already assigned.",
        {"current": str(case.status), "expected": ("OPEN",), "action": "reassign"},
    )


def eligible_target(target: UserView | None, target_id: Any = None) -> Guard:
    """The assignment target must exist, be active and be a caseworker."""

    def guard(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
        if target is None:
            return Deny(
                DenialReason.TARGET_NOT_FOUND,
                f"User {target_id} does not exist.",
                {"target_id": target_id},
            )
        if not target.is_active:
            return Deny(
                DenialReason.TARGET_INACTIVE,
                f"User {target.id} is inactive.",
                {"target_id": target.id},
            )
        if target.role != UserRole.CASEWORKER:
            return Deny(
                DenialReason.TARGET_WRONG_ROLE,
                f"Cases can only be assigned to caseworkers (user {target.id} is "
                f"{target.role.value if target.role else 'without a role'}).",
                {"target_id": target.id},
            )
        return ALLOW

    return guard


def active_cases_below(cap: int) -> Guard:
    """The worker's PENDING + IN_PROGRESS count must be below ``cap``."""

    def guard(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
        count = workload.active if workload else 0
        if count < cap:
            return ALLOW
        return Deny(
            DenialReason.WORKLOAD_EXCEEDED,
            f"Caseworker already has {count} active case(s); the limit is {cap}.",
            {"count": count, "cap": cap},
        )

    return guard


def in_progress_below(cap: int) -> Guard:
    """The worker's IN_PROGRESS count must be below ``cap``."""

    def guard(case: CaseRecord, caller: UserView, workload: WorkloadSnapshot | None) -> Decision:
        count = workload.in_progress if workload else 0
        if count < cap:
            return ALLOW
        return Deny(
            DenialReason.WORKLOAD_EXCEEDED,
            f"You already have {count} case(s) in progress; the limit is {cap}.",
            {"count": count, "cap": cap},
        )

    return guard
