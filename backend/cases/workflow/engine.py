"""
The case workflow engine.

``WorkflowEngine`` applies one action to one case:

1. load the case snapshot                      → ``NotFound``
2. resolve the caller                          → ``Unauthorized``
3. check the caller's role capability          → ``PermissionDenied``
4. check ownership (assignee-only actions)     → ``PermissionDenied``
5. check the source state                      → ``InvalidTransition``
6. check the assignment target                 → ``GuardViolation``
7. check the workload cap                      → ``WorkloadExceeded``
8. derive the new snapshot and its events
9. compare-and-swap the snapshot into the store → ``StaleCaseVersion``
10. hand the events to the sink

Assign and reassign check the source state first (3 and 5 swap), so
assigning a case that is not OPEN is a conflict whatever the caller's
role.  Events reach the sink only after step 9 succeeded.  The engine
holds no locks and keeps no state between calls; the host must
serialize calls per case id (see ``cases.services.CaseWorkflowService``).
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable

from django.utils import timezone

from core.constants import get_workload_cap
from core.domain.access import roles_with_capability
from core.domain.exceptions import (
    DomainError,
    NotFound,
    StaleCaseVersion,
    Unauthorized,
)
from core.domain.identity import UserView

from .events import AuditEntry, NotificationRequest, WorkflowEvent, build_notification
from .guards import (
    Decision,
    Guard,
    active_cases_below,
    caller_is_assignee,
    case_is_unassigned,
    check_all,
    eligible_target,
    in_progress_below,
    require_capability,
    require_status,
)
from .ports import CaseStore, EventSink, IdentityProvider
from .records import CaseRecord, WorkloadSnapshot
from .transitions import Audience, Transition, WorkflowAction, WorkloadRule, get_transition
from .workload import workload_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """The persisted case and the events emitted for it."""

    case: CaseRecord
    events: tuple[WorkflowEvent, ...]

    @property
    def audit_entry(self) -> AuditEntry:
        return next(e for e in self.events if isinstance(e, AuditEntry))

    @property
    def notification(self) -> NotificationRequest | None:
        return next((e for e in self.events if isinstance(e, NotificationRequest)), None)


class WorkflowEngine:
    """
    Applies workflow transitions against a ``CaseStore``.

    Args:
        store:        Case snapshots with compare-and-swap writes.
        identity:     Resolves user ids to ``UserView`` objects.
        sink:         Receives events after a successful write.  Optional;
                      the events are always returned in the result.
        workload_cap: Concurrent-case cap.  Defaults to the configured
                      value (``core.constants.get_workload_cap``), read
                      once here.
        clock:        Zero-argument callable returning an aware datetime.
    """

    def __init__(
        self,
        store: CaseStore,
        identity: IdentityProvider,
        sink: EventSink | None = None,
        *,
        workload_cap: int | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        if workload_cap is None:
            workload_cap = get_workload_cap()
        if workload_cap < 1:
            raise ValueError(f"workload_cap must be positive, got {workload_cap}.")
        self.store = store
        self.identity = identity
        self.sink = sink
        self.workload_cap = workload_cap
        self._clock = clock or timezone.now

    # ── Public operations ───────────────────────────────────────────

    def assign(self, case_id: Any, caller_id: Any, worker_id: Any) -> TransitionResult:
        return self.execute(WorkflowAction.ASSIGN, case_id, caller_id, worker_id=worker_id)

    def reassign(self, case_id: Any, caller_id: Any, worker_id: Any) -> TransitionResult:
        return self.execute(WorkflowAction.REASSIGN, case_id, caller_id, worker_id=worker_id)

    def accept(self, case_id: Any, caller_id: Any) -> TransitionResult:
        return self.execute(WorkflowAction.ACCEPT, case_id, caller_id)

    def reject(self, case_id: Any, caller_id: Any, reason: str = "") -> TransitionResult:
        return self.execute(WorkflowAction.REJECT, case_id, caller_id, reason=reason)

    def request_completion(self, case_id: Any, caller_id: Any) -> TransitionResult:
        return self.execute(WorkflowAction.REQUEST_COMPLETION, case_id, caller_id)

    def approve(self, case_id: Any, caller_id: Any) -> TransitionResult:
        return self.execute(WorkflowAction.APPROVE, case_id, caller_id)

    def reject_completion(self, case_id: Any, caller_id: Any, reason: str = "") -> TransitionResult:
        return self.execute(WorkflowAction.REJECT_COMPLETION, case_id, caller_id, reason=reason)

    def execute(
        self,
        action: WorkflowAction | str,
        case_id: Any,
        caller_id: Any,
        **params: Any,
    ) -> TransitionResult:
        """
        Apply ``action`` to case ``case_id`` on behalf of ``caller_id``.

        ``params`` carries action arguments: ``worker_id`` for
        assign/reassign, an optional ``reason`` for the two rejections.

        Raises:
            DomainError subclasses for every denial (nothing is written).
            PersistenceError / StaleCaseVersion if the write fails
            (nothing is emitted).
        """
        try:
            transition = get_transition(action)
        except ValueError:
            raise DomainError(f"Unknown workflow action {action!r}.") from None

        case = self.store.get(case_id)
        if case is None:
            raise NotFound(f"Case with id {case_id} not found.")

        caller = self.identity.resolve(caller_id)
        if caller is None or not caller.is_active:
            raise Unauthorized()

        self._enforce(case, caller, None, self._access_guards(transition))

        target = None
        if transition.needs_target_user:
            worker_id = params.get("worker_id")
            if worker_id is None:
                raise DomainError("'worker_id' is required to assign a case.")
            target = self.identity.resolve(worker_id)
            self._enforce(case, caller, None, [eligible_target(target, worker_id)])

        if transition.workload is not None:
            worker = target if transition.workload is WorkloadRule.TARGET_ACTIVE else caller
            snapshot = workload_snapshot(self.store, worker.id)
            self._enforce(case, caller, snapshot, [self._workload_guard(transition)])

        new_case = self._apply(transition, case, caller, target)
        events = self._build_events(transition, case, new_case, caller, params)

        if not self.store.compare_and_swap(case.id, case.version, new_case):
            raise StaleCaseVersion(case.id, case.version)

        if self.sink is not None:
            for event in events:
                self.sink.emit(event)

        logger.debug(
            "Case %s: %s by user %s (%s -> %s)",
            case.id, transition.action.value, caller.id, case.status, new_case.status,
        )
        return TransitionResult(case=new_case, events=events)

    # ── Guard assembly ──────────────────────────────────────────────

    @staticmethod
    def _access_guards(transition: Transition) -> list[Guard]:
        status = require_status(*transition.sources, action=transition.action.value)
        if transition.needs_target_user:
            # Assigning a case that is not OPEN is a state conflict for every role.
            guards = [status, case_is_unassigned]
            if transition.capability:
                guards.append(require_capability(transition.capability))
            return guards

        guards = []
        if transition.capability:
            guards.append(require_capability(transition.capability))
        if transition.assignee_only:
            guards.append(caller_is_assignee)
        guards.append(status)
        return guards

    def _workload_guard(self, transition: Transition) -> Guard:
        if transition.workload is WorkloadRule.TARGET_ACTIVE:
            return active_cases_below(self.workload_cap)
        return in_progress_below(self.workload_cap)

    @staticmethod
    def _enforce(
        case: CaseRecord,
        caller: UserView,
        workload: WorkloadSnapshot | None,
        guards: list[Guard],
    ) -> None:
        decision: Decision = check_all(guards, case, caller, workload)
        if not decision:
            logger.debug("Case %s: denied (%s) %s", case.id, decision.reason.value, decision.message)
            raise decision.to_exception()

    # ── State derivation ────────────────────────────────────────────

    def _apply(
        self,
        transition: Transition,
        case: CaseRecord,
        caller: UserView,
        target: UserView | None,
    ) -> CaseRecord:
        now = self._clock()
        metadata = case.metadata_dict()
        assignee_id = case.assignee_id

        if target is not None:
            assignee_id = target.id
        if transition.action is WorkflowAction.APPROVE:
            metadata["former_assignee_id"] = case.assignee_id
            metadata["completed_at"] = now.isoformat()
            metadata["completed_by"] = caller.id
        if transition.clears_assignee:
            assignee_id = None

        new_case = replace(
            case,
            status=transition.target,
            assignee_id=assignee_id,
            metadata=metadata,
            updated_at=now,
            version=case.version + 1,
        )
        new_case.check_invariants()
        return new_case

    def _build_events(
        self,
        transition: Transition,
        old: CaseRecord,
        new: CaseRecord,
        caller: UserView,
        params: dict[str, Any],
    ) -> tuple[WorkflowEvent, ...]:
        details = transition.audit_details.format(worker_id=new.assignee_id)
        reason = (params.get("reason") or "").strip()
        if reason:
            details = f"{details}: {reason}"

        events: list[WorkflowEvent] = [
            AuditEntry(
                case_id=old.id,
                actor_id=caller.id,
                action=str(transition.audit_action),
                details=details,
                timestamp=new.updated_at,
                from_status=str(old.status),
                to_status=str(new.status),
            )
        ]

        if transition.notify_event:
            recipients = {
                Audience.ASSIGNEE: new.assignee_id,
                Audience.CREATOR: old.creator_id,
                Audience.PREVIOUS_ASSIGNEE: old.assignee_id,
            }
            roles: tuple[str, ...] = ()
            if transition.notify_capability:
                roles = tuple(role.value for role in roles_with_capability(transition.notify_capability))
            notification = build_notification(
                event_type=transition.notify_event,
                case_id=old.id,
                case_title=old.title,
                actor_id=caller.id,
                recipient_ids=tuple(recipients[audience] for audience in transition.notify),
                recipient_roles=roles,
            )
            if notification is not None:
                events.append(notification)

        return tuple(events)
