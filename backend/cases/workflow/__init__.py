"""
cases.workflow: the case workflow engine.

Framework-light core of the cases app.  Nothing in this package touches
the ORM; the engine talks to a ``CaseStore``, an ``IdentityProvider``
and an ``EventSink`` (see ``ports``).  Django-backed implementations
live in ``cases.stores`` and ``accounts.services``.
"""

from .engine import TransitionResult, WorkflowEngine
from .events import AuditEntry, NotificationRequest, WorkflowEvent
from .guards import ALLOW, DenialReason, Deny
from .records import CaseRecord, WorkloadSnapshot
from .transitions import TRANSITIONS, WorkflowAction
from .workload import count_active_cases, workload_snapshot

__all__ = [
    "ALLOW",
    "AuditEntry",
    "CaseRecord",
    "DenialReason",
    "Deny",
    "NotificationRequest",
    "TRANSITIONS",
    "TransitionResult",
    "WorkflowAction",
    "WorkflowEngine",
    "WorkflowEvent",
    "WorkloadSnapshot",
    "count_active_cases",
    "workload_snapshot",
]
