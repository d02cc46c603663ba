"""
The case workflow transition table.

Each ``WorkflowAction`` maps to one ``Transition`` describing where the
action may start, where it ends, who may perform it and what it
announces.  The engine interprets this table; adding a transition never
requires a new code path in ``engine.py`` unless it needs a new kind of
guard.

    OPEN ──assign/reassign──▶ PENDING ──accept──▶ IN_PROGRESS
      ▲                          │                  │     ▲
      └──────────reject──────────┘   request_completion   reject_completion
                                                    ▼     │
                           COMPLETED ◀──approve── PENDING_COMPLETION
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from cases.models import CaseLogAction, CaseStatus
from core.permissions_constants import CasesPerms, CorePerms


class WorkflowAction(str, enum.Enum):
    ASSIGN = "assign"
    REASSIGN = "reassign"
    ACCEPT = "accept"
    REJECT = "reject"
    REQUEST_COMPLETION = "request_completion"
    APPROVE = "approve"
    REJECT_COMPLETION = "reject_completion"


class WorkloadRule(str, enum.Enum):
    """Which count the workload guard compares with the cap."""

    TARGET_ACTIVE = "target_active"
    CALLER_IN_PROGRESS = "caller_in_progress"


class Audience(str, enum.Enum):
    """Who a transition's notification is addressed to."""

    ASSIGNEE = "assignee"
    CREATOR = "creator"
    PREVIOUS_ASSIGNEE = "previous_assignee"


@dataclass(frozen=True)
class Transition:
    action: WorkflowAction
    sources: tuple[str, ...]
    target: str
    audit_action: str
    audit_details: str = ""
    capability: str | None = None
    assignee_only: bool = False
    needs_target_user: bool = False
    workload: WorkloadRule | None = None
    notify_event: str | None = None
    notify: tuple[Audience, ...] = ()
    notify_capability: str | None = None
    clears_assignee: bool = False


_ASSIGN_KWARGS = dict(
    sources=(CaseStatus.OPEN,),
    target=CaseStatus.PENDING,
    audit_action=CaseLogAction.ASSIGNED,
    audit_details="Assigned to user {worker_id}",
    capability=CasesPerms.CAN_ASSIGN_CASE,
    needs_target_user=True,
    workload=WorkloadRule.TARGET_ACTIVE,
    notify_event="case_assigned",
    notify=(Audience.ASSIGNEE,),
)

TRANSITIONS: dict[WorkflowAction, Transition] = {
    WorkflowAction.ASSIGN: Transition(action=WorkflowAction.ASSIGN, **_ASSIGN_KWARGS),
    # Reassignment is only reachable once the previous assignee declined
    # and the case is OPEN again, so it shares assign's rules.
    WorkflowAction.REASSIGN: Transition(action=WorkflowAction.REASSIGN, **_ASSIGN_KWARGS),
    WorkflowAction.ACCEPT: Transition(
        action=WorkflowAction.ACCEPT,
        sources=(CaseStatus.PENDING,),
        target=CaseStatus.IN_PROGRESS,
        audit_action=CaseLogAction.ACCEPTED,
        audit_details="Assignment accepted",
        capability=CasesPerms.CAN_WORK_CASES,
        assignee_only=True,
        workload=WorkloadRule.CALLER_IN_PROGRESS,
        notify_event="case_accepted",
        notify=(Audience.CREATOR,),
    ),
    WorkflowAction.REJECT: Transition(
        action=WorkflowAction.REJECT,
        sources=(CaseStatus.PENDING,),
        target=CaseStatus.OPEN,
        audit_action=CaseLogAction.REJECTED,
        audit_details="Assignment rejected",
        capability=CasesPerms.CAN_WORK_CASES,
        assignee_only=True,
        notify_event="case_rejected",
        notify=(Audience.CREATOR,),
        clears_assignee=True,
    ),
    WorkflowAction.REQUEST_COMPLETION: Transition(
        action=WorkflowAction.REQUEST_COMPLETION,
        sources=(CaseStatus.IN_PROGRESS,),
        target=CaseStatus.PENDING_COMPLETION,
        audit_action=CaseLogAction.COMPLETION_REQUESTED,
        audit_details="Completion requested",
        capability=CasesPerms.CAN_WORK_CASES,
        assignee_only=True,
        notify_event="case_completion_requested",
        notify_capability=CorePerms.CAN_RECEIVE_COMPLETION_REQUESTS,
    ),
    WorkflowAction.APPROVE: Transition(
        action=WorkflowAction.APPROVE,
        sources=(CaseStatus.PENDING_COMPLETION,),
        target=CaseStatus.COMPLETED,
        audit_action=CaseLogAction.APPROVED,
        audit_details="Completion approved",
        capability=CasesPerms.CAN_REVIEW_COMPLETION,
        notify_event="case_completion_approved",
        notify=(Audience.CREATOR, Audience.PREVIOUS_ASSIGNEE),
        clears_assignee=True,
    ),
    WorkflowAction.REJECT_COMPLETION: Transition(
        action=WorkflowAction.REJECT_COMPLETION,
        sources=(CaseStatus.PENDING_COMPLETION,),
        target=CaseStatus.IN_PROGRESS,
        audit_action=CaseLogAction.COMPLETION_REJECTED,
        audit_details="Completion rejected, case returned to the assignee",
        capability=CasesPerms.CAN_REVIEW_COMPLETION,
        notify_event="case_completion_rejected",
        notify=(Audience.ASSIGNEE, Audience.CREATOR),
    ),
}


def get_transition(action: WorkflowAction | str) -> Transition:
    """Look up ``action``; raises ``ValueError`` for unknown names."""
    return TRANSITIONS[WorkflowAction(action)]
