"""
core.domain.exceptions: Domain-specific exception hierarchy.

These exceptions represent business-rule violations raised by the case
workflow engine and the service layers around it.  They are deliberately
**not** DRF exceptions so that the domain layer stays framework-agnostic.
``core.domain.exception_handler`` maps them to HTTP responses.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception    │ Meaning                      │ Code │
├─────────────────────┼──────────────────────────────┼──────┤
│ DomainError         │ generic business-rule error  │ 400  │
│ Unauthorized        │ caller unknown / inactive    │ 401  │
│ PermissionDenied    │ role / ownership forbidden   │ 403  │
│ NotFound            │ case does not exist          │ 404  │
│ Conflict            │ conflicts with current state │ 409  │
│ InvalidTransition   │ wrong source state           │ 409  │
│ GuardViolation      │ assignment target invalid    │ 422  │
│ WorkloadExceeded    │ worker at concurrent cap     │ 422  │
│ StaleCaseVersion    │ lost compare-and-swap        │ 409  │
│ PersistenceError    │ store unavailable            │ 503  │
└─────────────────────┴──────────────────────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if case.status != CaseStatus.OPEN:
        raise InvalidTransition(current=case.status, expected=[CaseStatus.OPEN])
"""

from __future__ import annotations

import enum
from typing import Any, Iterable


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        """Payload rendered by the API exception handler."""
        return {"detail": self.message, "code": self.code}


class Unauthorized(DomainError):
    """
    The caller identity cannot be resolved, or the account is inactive.

    Maps to HTTP 401.
    """

    code = "unauthorized"

    def __init__(self, message: str = "The caller could not be identified or is inactive.") -> None:
        super().__init__(message)


class PermissionDenied(DomainError):
    """
    The caller's role (or relationship to the case) does not allow the
    requested action.

    Maps to HTTP 403.
    """

    code = "forbidden"

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


#: The workflow taxonomy calls this error "Forbidden".
Forbidden = PermissionDenied


class NotFound(DomainError):
    """
    The requested resource does not exist.

    Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    The case is not in the state the requested action requires.

    Carries the current state and the state(s) the action expects.

    Example::

        raise InvalidTransition(
            current="pending",
            expected=["open"],
            action="assign",
        )
    """

    code = "invalid_state_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        expected: Iterable[str] | None = None,
        action: str | None = None,
    ) -> None:
        expected_states = tuple(str(s) for s in (expected or ()))
        if message is None:
            parts = ["Invalid state transition"]
            if action:
                parts.append(f"for '{action}'")
            if current is not None:
                parts.append(f"(case is '{current}'")
                if expected_states:
                    parts.append(f"but must be one of: {', '.join(expected_states)})")
                else:
                    parts[-1] += ")"
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = None if current is None else str(current)
        self.expected = expected_states
        self.action = action

    def as_dict(self) -> dict[str, Any]:
        data = super().as_dict()
        data["current"] = self.current
        data["expected"] = list(self.expected)
        return data


class GuardReason(str, enum.Enum):
    """Sub-reasons of a ``GuardViolation``."""

    TARGET_NOT_FOUND = "target_not_found"
    TARGET_INACTIVE = "target_inactive"
    TARGET_WRONG_ROLE = "target_wrong_role"
    WORKLOAD_EXCEEDED = "workload_exceeded"


class GuardViolation(DomainError):
    """
    A transition-specific precondition failed (invalid assignment target
    or concurrent-case cap reached).

    Maps to HTTP 422.
    """

    code = "guard_violation"

    def __init__(self, reason: GuardReason, message: str | None = None) -> None:
        self.reason = GuardReason(reason)
        super().__init__(message or f"Guard violated: {self.reason.value}.")

    def as_dict(self) -> dict[str, Any]:
        data = super().as_dict()
        data["reason"] = self.reason.value
        return data


class WorkloadExceeded(GuardViolation):
    """The worker already holds ``count`` active cases against a cap of ``cap``."""

    def __init__(self, *, count: int, cap: int, message: str | None = None) -> None:
        self.count = count
        self.cap = cap
        super().__init__(
            GuardReason.WORKLOAD_EXCEEDED,
            message or f"Worker already has {count} active case(s); the limit is {cap}.",
        )

    def as_dict(self) -> dict[str, Any]:
        data = super().as_dict()
        data["count"] = self.count
        data["cap"] = self.cap
        return data


class PersistenceError(Exception):
    """
    The case store could not complete a read or write.

    Infrastructure failure, not a business-rule violation: the host
    decides whether to retry the whole call.  Maps to HTTP 503.
    """

    code = "persistence_error"

    def __init__(self, message: str = "The case store is unavailable.") -> None:
        self.message = message
        super().__init__(message)


class StaleCaseVersion(PersistenceError):
    """
    The compare-and-swap write lost against a concurrent transition on
    the same case.  Maps to HTTP 409.
    """

    code = "stale_case_version"

    def __init__(self, case_id: Any, expected_version: int) -> None:
        self.case_id = case_id
        self.expected_version = expected_version
        super().__init__(
            f"Case {case_id} was modified concurrently "
            f"(expected version {expected_version})."
        )
