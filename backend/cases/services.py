"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app that touches the database.  Views must remain
thin: validate input via serializers, call a service method, and return
the result wrapped in a DRF ``Response``.

Architecture
------------
- ``CaseQueryService``        : role-scoped case querysets.
- ``CaseCreationService``     : opening new cases.
- ``CaseWorkflowService``     : runs ``cases.workflow.WorkflowEngine``
                                against the ORM, one transaction per call.
- ``CaseLogService``          : manual notes and the audit trail.
- ``CaseworkerQueryService``  : caseworkers and their current workload.

Transition rules themselves live in ``cases.workflow``; nothing here
re-checks a state or a role the engine already checks.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from accounts.models import User
from accounts.services import UserIdentityProvider
from core.constants import get_workload_cap
from core.domain.access import apply_permission_scope, require_capability
from core.domain.exceptions import DomainError, NotFound
from core.domain.identity import UserRole
from core.domain.transactions import atomic_service
from core.permissions_constants import CasesPerms

from .models import Case, CaseLog, CaseLogAction, CasePriority, CaseStatus
from .stores import CaseEventSink, OrmCaseStore
from .workflow import WorkflowAction, WorkflowEngine
from .workflow.records import ACTIVE_STATUSES

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Case Query Service
# ═══════════════════════════════════════════════════════════════════

#: Ordered broadest first; the first rule whose capability the user
#: holds decides the scope.
CASE_SCOPE_RULES = [
    (CasesPerms.CAN_SCOPE_ALL_CASES, lambda qs, u: qs),
    (
        CasesPerms.CAN_SCOPE_ASSIGNED_CASES,
        lambda qs, u: qs.filter(Q(assigned_to=u) | Q(metadata__former_assignee_id=u.pk)),
    ),
]


class CaseQueryService:
    """
    Constructs filtered querysets for listing and retrieving cases.

    ADMIN and MANAGER see every case; a CASEWORKER sees the cases
    currently assigned to them and the ones they completed.
    """

    @staticmethod
    def get_visible_cases(
        requesting_user: Any,
        filters: dict[str, Any] | None = None,
    ) -> QuerySet:
        """
        Build a role-scoped, filtered queryset of ``Case`` objects.

        Supported ``filters`` keys: ``status``, ``priority``,
        ``assigned_to`` (user PK), ``created_by`` (user PK),
        ``search`` (title/description), ``overdue`` (bool).
        """
        queryset = apply_permission_scope(
            Case.objects.select_related("created_by", "assigned_to"),
            requesting_user,
            scope_rules=CASE_SCOPE_RULES,
        )

        filters = filters or {}
        if filters.get("status"):
            queryset = queryset.filter(status=filters["status"])
        if filters.get("priority"):
            queryset = queryset.filter(priority=filters["priority"])
        if filters.get("assigned_to"):
            queryset = queryset.filter(assigned_to_id=filters["assigned_to"])
        if filters.get("created_by"):
            queryset = queryset.filter(created_by_id=filters["created_by"])
        if filters.get("search"):
            term = filters["search"]
            queryset = queryset.filter(Q(title__icontains=term) | Q(description__icontains=term))
        if filters.get("overdue"):
            queryset = queryset.filter(due_date__lt=timezone.now()).exclude(
                status=CaseStatus.COMPLETED,
            )
        return queryset

    @staticmethod
    def get_case_detail(case_id: Any, requesting_user: Any) -> Case:
        """
        Return one visible case.

        Cases outside the user's scope raise ``NotFound``, so their
        existence is not disclosed.
        """
        try:
            return CaseQueryService.get_visible_cases(requesting_user).get(pk=case_id)
        except (Case.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Case with id {case_id} not found.")


# ═══════════════════════════════════════════════════════════════════
#  Case Creation Service
# ═══════════════════════════════════════════════════════════════════


class CaseCreationService:

    @staticmethod
    @transaction.atomic
    def create_case(validated_data: dict[str, Any], requesting_user: Any) -> Case:
        """
        Open a new, unassigned case and record it in the audit trail.

        Raises:
            PermissionDenied: caller lacks ``CAN_CREATE_CASE``.
        """
        require_capability(
            requesting_user,
            CasesPerms.CAN_CREATE_CASE,
            message="Only administrators and managers can open cases.",
        )

        case = Case.objects.create(
            title=validated_data["title"],
            description=validated_data.get("description", ""),
            priority=validated_data.get("priority") or CasePriority.MEDIUM,
            due_date=validated_data.get("due_date"),
            metadata=validated_data.get("metadata") or {},
            status=CaseStatus.OPEN,
            created_by=requesting_user,
        )
        CaseLog.objects.create(
            case=case,
            user=requesting_user,
            action=CaseLogAction.CREATED,
            details=f"Case opened: {case.title}",
            to_status=CaseStatus.OPEN,
        )
        logger.info("Case %s opened by user %s", case.pk, requesting_user.pk)
        return case


# ═══════════════════════════════════════════════════════════════════
#  Case Workflow Service
# ═══════════════════════════════════════════════════════════════════


class CaseWorkflowService:
    """
    Runs workflow transitions against the database.

    Every call is one ``transaction.atomic()`` block:

    1. ``OrmCaseStore.get`` locks the case row (``SELECT ... FOR UPDATE``);
    2. the engine checks its guards and derives the new state;
    3. ``OrmCaseStore.compare_and_swap`` writes it, conditional on the
       version read in step 1;
    4. ``CaseEventSink`` writes the ``CaseLog`` row and the outbox row.

    Any exception rolls all of it back.  Notifications are delivered
    from the outbox after commit.
    """

    @staticmethod
    def build_engine() -> WorkflowEngine:
        return WorkflowEngine(
            OrmCaseStore(lock_rows=True),
            UserIdentityProvider(),
            CaseEventSink(),
        )

    @staticmethod
    @atomic_service
    def execute(
        action: WorkflowAction | str,
        case_id: Any,
        requesting_user: Any,
        **params: Any,
    ) -> Case:
        """
        Apply ``action`` and return the updated ``Case`` instance.

        Raises:
            DomainError subclasses for every denial.
            PersistenceError if the database fails or the case changed
            concurrently (``StaleCaseVersion``).
        """
        engine = CaseWorkflowService.build_engine()
        result = engine.execute(action, case_id, requesting_user.pk, **params)
        logger.info(
            "Case %s: %s by user %s (%s -> %s)",
            result.case.id,
            WorkflowAction(action).value,
            requesting_user.pk,
            result.audit_entry.from_status,
            result.audit_entry.to_status,
        )
        return Case.objects.select_related("created_by", "assigned_to").get(pk=result.case.id)

    @staticmethod
    def assign(case_id: Any, requesting_user: Any, worker_id: Any) -> Case:
        return CaseWorkflowService.execute(
            WorkflowAction.ASSIGN, case_id, requesting_user, worker_id=worker_id,
        )

    @staticmethod
    def reassign(case_id: Any, requesting_user: Any, worker_id: Any) -> Case:
        return CaseWorkflowService.execute(
            WorkflowAction.REASSIGN, case_id, requesting_user, worker_id=worker_id,
        )

    @staticmethod
    def accept(case_id: Any, requesting_user: Any) -> Case:
        return CaseWorkflowService.execute(WorkflowAction.ACCEPT, case_id, requesting_user)

    @staticmethod
    def reject(case_id: Any, requesting_user: Any, reason: str = "") -> Case:
        return CaseWorkflowService.execute(
            WorkflowAction.REJECT, case_id, requesting_user, reason=reason,
        )

    @staticmethod
    def request_completion(case_id: Any, requesting_user: Any) -> Case:
        return CaseWorkflowService.execute(
            WorkflowAction.REQUEST_COMPLETION, case_id, requesting_user,
        )

    @staticmethod
    def approve(case_id: Any, requesting_user: Any) -> Case:
        return CaseWorkflowService.execute(WorkflowAction.APPROVE, case_id, requesting_user)

    @staticmethod
    def reject_completion(case_id: Any, requesting_user: Any, reason: str = "") -> Case:
        return CaseWorkflowService.execute(
            WorkflowAction.REJECT_COMPLETION, case_id, requesting_user, reason=reason,
        )


# ═══════════════════════════════════════════════════════════════════
#  Case Log Service
# ═══════════════════════════════════════════════════════════════════


class CaseLogService:

    @staticmethod
    def list_logs(case_id: Any, requesting_user: Any) -> QuerySet:
        """Audit trail of a visible case, newest first."""
        case = CaseQueryService.get_case_detail(case_id, requesting_user)
        return case.logs.select_related("user").order_by("-created_at", "-id")

    @staticmethod
    @transaction.atomic
    def add_note(case_id: Any, requesting_user: Any, details: str) -> CaseLog:
        """
        Append a manual note to a case's audit trail.

        Raises:
            NotFound:         case missing or outside the caller's scope.
            PermissionDenied: caller lacks ``CAN_ANNOTATE_CASE``.
            DomainError:      blank note.
        """
        case = CaseQueryService.get_case_detail(case_id, requesting_user)
        require_capability(
            requesting_user,
            CasesPerms.CAN_ANNOTATE_CASE,
            message="You cannot add notes to cases.",
        )
        details = (details or "").strip()
        if not details:
            raise DomainError("A note cannot be empty.")

        log = CaseLog.objects.create(
            case=case,
            user=requesting_user,
            action=CaseLogAction.NOTE,
            details=details,
            from_status=case.status,
            to_status=case.status,
        )
        logger.info("Note %s added to case %s by user %s", log.pk, case.pk, requesting_user.pk)
        return log


# ═══════════════════════════════════════════════════════════════════
#  Caseworker Query Service
# ═══════════════════════════════════════════════════════════════════


class CaseworkerQueryService:

    @staticmethod
    def available_caseworkers(requesting_user: Any) -> list[dict[str, Any]]:
        """
        Active caseworkers with their current workload, least loaded
        first.

        Each entry: ``id``, ``username``, ``full_name``, ``active_cases``
        (PENDING + IN_PROGRESS) and ``can_accept_more`` (below the cap).

        Raises:
            PermissionDenied: caller lacks ``CAN_ASSIGN_CASE``.
        """
        require_capability(
            requesting_user,
            CasesPerms.CAN_ASSIGN_CASE,
            message="Only administrators and managers can list caseworkers.",
        )
        cap = get_workload_cap()
        workers = (
            User.objects
            .filter(is_active=True, role__in=UserRole.stored_names([UserRole.CASEWORKER]))
            .annotate(
                active_cases=Count(
                    "assigned_cases",
                    filter=Q(assigned_cases__status__in=list(ACTIVE_STATUSES)),
                )
            )
            .order_by("active_cases", "username")
        )
        return [
            {
                "id": worker.pk,
                "username": worker.username,
                "full_name": worker.get_full_name() or worker.username,
                "active_cases": worker.active_cases,
                "can_accept_more": worker.active_cases < cap,
            }
            for worker in workers
        ]
