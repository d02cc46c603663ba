"""
Side-effect requests produced by a workflow transition.

The engine only *describes* side effects; an ``EventSink`` decides how
they are stored and delivered.  Every successful transition produces
exactly one ``AuditEntry`` and at most one ``NotificationRequest``.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class AuditEntry:
    """Content of one ``CaseLog`` row."""

    case_id: Any
    actor_id: Any
    action: str
    details: str
    timestamp: datetime.datetime
    from_status: str = ""
    to_status: str = ""


@dataclass(frozen=True)
class NotificationRequest:
    """
    Ask the notification dispatcher to inform people about a case event.

    ``recipient_ids`` addresses individual users; ``recipient_roles``
    addresses every active user holding one of the roles.  The actor is
    never notified about their own action.
    """

    event_type: str
    case_id: Any
    case_title: str
    actor_id: Any
    recipient_ids: tuple[Any, ...] = ()
    recipient_roles: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """JSON-serialisable form stored in the outbox."""
        return {
            "event_type": self.event_type,
            "case_id": self.case_id,
            "case_title": self.case_title,
            "actor_id": self.actor_id,
            "recipient_ids": list(self.recipient_ids),
            "recipient_roles": [str(role) for role in self.recipient_roles],
        }


WorkflowEvent = Union[AuditEntry, NotificationRequest]


def build_notification(
    *,
    event_type: str,
    case_id: Any,
    case_title: str,
    actor_id: Any,
    recipient_ids: tuple[Any, ...] = (),
    recipient_roles: tuple[str, ...] = (),
) -> NotificationRequest | None:
    """
    Return a ``NotificationRequest`` addressed to everyone but the actor,
    or ``None`` when nobody is left to notify.
    """
    seen: list[Any] = []
    for user_id in recipient_ids:
        if user_id is None or user_id == actor_id or user_id in seen:
            continue
        seen.append(user_id)
    if not seen and not recipient_roles:
        return None
    return NotificationRequest(
        event_type=event_type,
        case_id=case_id,
        case_title=case_title,
        actor_id=actor_id,
        recipient_ids=tuple(seen),
        recipient_roles=tuple(recipient_roles),
    )
