"""
Immutable snapshots the workflow engine reasons about.

``CaseRecord`` is the engine's view of a case: a frozen value that the
store hands out and receives back.  The engine never mutates a record,
it derives a new one with ``dataclasses.replace``.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from cases.models import CasePriority, CaseStatus

#: Statuses that require an assignee (and only these).
ASSIGNED_STATUSES: frozenset[str] = frozenset({
    CaseStatus.PENDING,
    CaseStatus.IN_PROGRESS,
    CaseStatus.PENDING_COMPLETION,
})

#: Statuses counted against a worker's concurrent-case cap.
ACTIVE_STATUSES: frozenset[str] = frozenset({
    CaseStatus.PENDING,
    CaseStatus.IN_PROGRESS,
})

TERMINAL_STATUSES: frozenset[str] = frozenset({CaseStatus.COMPLETED})


class InvariantError(ValueError):
    """A record violates the status/assignee invariant."""


@dataclass(frozen=True)
class CaseRecord:
    id: Any
    title: str
    status: str
    creator_id: Any
    assignee_id: Any = None
    description: str = ""
    priority: str = CasePriority.MEDIUM
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
    due_date: datetime.datetime | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    version: int = 0

    def __post_init__(self) -> None:
        # Freeze the metadata so a snapshot cannot be changed behind the store's back.
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def check_invariants(self) -> None:
        """Raise ``InvariantError`` if status and assignee disagree."""
        if self.status not in CaseStatus.values:
            raise InvariantError(f"Unknown status {self.status!r} on case {self.id}.")
        needs_assignee = self.status in ASSIGNED_STATUSES
        if needs_assignee and self.assignee_id is None:
            raise InvariantError(f"Case {self.id} is {self.status} but has no assignee.")
        if not needs_assignee and self.assignee_id is not None:
            raise InvariantError(
                f"Case {self.id} is {self.status} but still has assignee {self.assignee_id}."
            )

    def metadata_dict(self) -> dict[str, Any]:
        """Return a mutable copy of the metadata."""
        return dict(self.metadata)


@dataclass(frozen=True)
class WorkloadSnapshot:
    """A worker's active-case counts at one decision point."""

    worker_id: Any
    pending: int = 0
    in_progress: int = 0

    @property
    def active(self) -> int:
        return self.pending + self.in_progress
