"""
Django ORM implementations of the workflow engine's contracts.

* ``OrmCaseStore``  reads ``Case`` rows as ``CaseRecord`` snapshots and
  writes them back with a version compare-and-swap.
* ``CaseEventSink`` turns ``AuditEntry`` events into ``CaseLog`` rows and
  ``NotificationRequest`` events into outbox rows, inside the caller's
  transaction, and schedules outbox delivery for after the commit.

Both are meant to be used inside ``transaction.atomic()``; see
``cases.services.CaseWorkflowService``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from django.db import DatabaseError

from core.domain.exceptions import PersistenceError
from core.domain.outbox import schedule_dispatch
from core.domain.transactions import compare_and_swap
from core.models import OutboxEvent

from .models import Case, CaseLog
from .workflow.events import AuditEntry, NotificationRequest, WorkflowEvent
from .workflow.records import CaseRecord

logger = logging.getLogger(__name__)


def case_to_record(case: Case) -> CaseRecord:
    return CaseRecord(
        id=case.pk,
        title=case.title,
        status=case.status,
        creator_id=case.created_by_id,
        assignee_id=case.assigned_to_id,
        description=case.description,
        priority=case.priority,
        created_at=case.created_at,
        updated_at=case.updated_at,
        due_date=case.due_date,
        metadata=case.metadata or {},
        version=case.version,
    )


class OrmCaseStore:
    """
    ``CaseStore`` backed by the ``Case`` table.

    With ``lock_rows=True`` (the default) ``get`` takes a row lock
    (``SELECT ... FOR UPDATE``), so concurrent transitions on one case
    queue behind each other until the surrounding transaction ends.
    """

    def __init__(self, *, lock_rows: bool = True) -> None:
        self.lock_rows = lock_rows

    def get(self, case_id: Any) -> CaseRecord | None:
        queryset = Case.objects.all()
        if self.lock_rows:
            queryset = queryset.select_for_update()
        try:
            case = queryset.get(pk=case_id)
        except (Case.DoesNotExist, ValueError, TypeError):
            return None
        except DatabaseError as exc:
            raise PersistenceError(f"Could not load case {case_id}: {exc}") from exc
        return case_to_record(case)

    def compare_and_swap(self, case_id: Any, expected_version: int, new_case: CaseRecord) -> bool:
        return compare_and_swap(
            Case,
            case_id,
            expected_version=expected_version,
            values={
                "status": new_case.status,
                "assigned_to_id": new_case.assignee_id,
                "metadata": new_case.metadata_dict(),
                "updated_at": new_case.updated_at,
            },
        )

    def count_assigned(self, worker_id: Any, statuses: Iterable[str]) -> int:
        try:
            return Case.objects.filter(
                assigned_to_id=worker_id,
                status__in=[str(s) for s in statuses],
            ).count()
        except DatabaseError as exc:
            raise PersistenceError(f"Could not count cases of user {worker_id}: {exc}") from exc


class CaseEventSink:
    """
    ``EventSink`` that persists events in the current transaction.

    Audit entries become ``CaseLog`` rows.  Notification requests become
    ``OutboxEvent`` rows delivered by ``core.domain.outbox`` after the
    transaction commits; a rollback discards them with the case update.
    """

    def emit(self, event: WorkflowEvent) -> None:
        try:
            if isinstance(event, AuditEntry):
                self._write_log(event)
            elif isinstance(event, NotificationRequest):
                self._write_outbox(event)
            else:
                raise TypeError(f"Unsupported workflow event: {event!r}")
        except DatabaseError as exc:
            raise PersistenceError(f"Could not record {type(event).__name__}: {exc}") from exc

    @staticmethod
    def _write_log(entry: AuditEntry) -> None:
        CaseLog.objects.create(
            case_id=entry.case_id,
            user_id=entry.actor_id,
            action=entry.action,
            details=entry.details,
            from_status=entry.from_status,
            to_status=entry.to_status,
            created_at=entry.timestamp,
        )

    @staticmethod
    def _write_outbox(request: NotificationRequest) -> None:
        event = OutboxEvent.objects.create(
            kind=OutboxEvent.Kind.NOTIFICATION,
            payload=request.to_payload(),
        )
        logger.debug("Queued outbox event %s (%s) for case %s", event.pk, request.event_type, request.case_id)
        schedule_dispatch()
