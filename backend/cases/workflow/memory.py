"""
In-process implementations of the workflow contracts.

Used by the engine's unit tests and by hosts that keep cases in memory
(single process).  ``InMemoryCaseStore.compare_and_swap`` is atomic
under a lock, so concurrent callers on one case can never both win.
"""

from __future__ import annotations

import threading
from typing import Any, Iterable

from core.domain.identity import UserRole, UserView

from .events import AuditEntry, NotificationRequest, WorkflowEvent
from .records import CaseRecord


class InMemoryCaseStore:

    def __init__(self, cases: Iterable[CaseRecord] = ()) -> None:
        self._cases: dict[Any, CaseRecord] = {}
        self._lock = threading.Lock()
        for case in cases:
            self.add(case)

    def add(self, case: CaseRecord) -> CaseRecord:
        with self._lock:
            self._cases[case.id] = case
        return case

    def get(self, case_id: Any) -> CaseRecord | None:
        with self._lock:
            return self._cases.get(case_id)

    def compare_and_swap(self, case_id: Any, expected_version: int, new_case: CaseRecord) -> bool:
        with self._lock:
            current = self._cases.get(case_id)
            if current is None or current.version != expected_version:
                return False
            self._cases[case_id] = new_case
            return True

    def count_assigned(self, worker_id: Any, statuses: Iterable[str]) -> int:
        wanted = {str(s) for s in statuses}
        with self._lock:
            return sum(
                1
                for case in self._cases.values()
                if case.assignee_id == worker_id and str(case.status) in wanted
            )


class InMemoryIdentityProvider:

    def __init__(self, users: Iterable[UserView] = ()) -> None:
        self._users: dict[Any, UserView] = {user.id: user for user in users}

    def add(self, user_id: Any, role: UserRole | str | None, *, is_active: bool = True) -> UserView:
        view = UserView(id=user_id, role=UserRole.normalize(role), is_active=is_active)
        self._users[user_id] = view
        return view

    def resolve(self, user_id: Any) -> UserView | None:
        return self._users.get(user_id)


class RecordingEventSink:
    """Keeps every emitted event, in order."""

    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []

    def emit(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    @property
    def audit_entries(self) -> list[AuditEntry]:
        return [e for e in self.events if isinstance(e, AuditEntry)]

    @property
    def notifications(self) -> list[NotificationRequest]:
        return [e for e in self.events if isinstance(e, NotificationRequest)]
