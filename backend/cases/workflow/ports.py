"""
Contracts between the workflow engine and its collaborators.

The engine depends only on these protocols:

* ``CaseStore``: read a case, write it back with compare-and-swap,
  and count a worker's cases by status.
* ``IdentityProvider``: resolve a user id (``core.domain.identity``).
* ``EventSink``: receive audit entries and notification requests
  once the store has confirmed the write.

Implementations: ``cases.workflow.memory`` (in-process) and
``cases.stores`` (Django ORM).
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol

from core.domain.identity import IdentityProvider, UserView

from .events import WorkflowEvent
from .records import CaseRecord

__all__ = ["CaseStore", "EventSink", "IdentityProvider", "UserView"]


class CaseStore(Protocol):

    def get(self, case_id: Any) -> CaseRecord | None:
        """Return the current snapshot of the case, or ``None``."""
        ...

    def compare_and_swap(
        self,
        case_id: Any,
        expected_version: int,
        new_case: CaseRecord,
    ) -> bool:
        """
        Replace the stored case with ``new_case`` only if the stored
        version is still ``expected_version``.  The stored version
        becomes ``new_case.version``.
        """
        ...

    def count_assigned(self, worker_id: Any, statuses: Iterable[str]) -> int:
        """Count cases assigned to ``worker_id`` whose status is in ``statuses``."""
        ...


class EventSink(Protocol):

    def emit(self, event: WorkflowEvent) -> None:
        ...
