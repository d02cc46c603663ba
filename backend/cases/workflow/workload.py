"""
Workload accounting for the concurrent-case cap.

Counts are always read fresh from the store; nothing here caches.  Two
assignments to the same worker on *different* cases may still both read
a count below the cap and both succeed.  That overshoot is accepted:
only per-case serialization is guaranteed, not per-worker.
"""

from __future__ import annotations

from typing import Any

from cases.models import CaseStatus

from .ports import CaseStore
from .records import ACTIVE_STATUSES, WorkloadSnapshot


def count_active_cases(store: CaseStore, worker_id: Any) -> int:
    """Number of PENDING + IN_PROGRESS cases assigned to ``worker_id``."""
    return store.count_assigned(worker_id, ACTIVE_STATUSES)


def workload_snapshot(store: CaseStore, worker_id: Any) -> WorkloadSnapshot:
    """Per-status breakdown of ``worker_id``'s active cases."""
    return WorkloadSnapshot(
        worker_id=worker_id,
        pending=store.count_assigned(worker_id, [CaseStatus.PENDING]),
        in_progress=store.count_assigned(worker_id, [CaseStatus.IN_PROGRESS]),
    )
