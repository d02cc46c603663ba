"""
Core constants: **Single Source of Truth** for project-wide magic numbers.

Any business rule that references a numeric constant should import it
from here instead of hardcoding.  This avoids drift between apps that
use the same value.
"""

from django.conf import settings

# ── Workload cap ────────────────────────────────────────────────────
# Maximum number of *active* cases (PENDING + IN_PROGRESS) a caseworker
# may hold at once.  Overridable through ``settings.CASE_WORKFLOW``.
DEFAULT_WORKLOAD_CAP: int = 5

# ── Outbox ──────────────────────────────────────────────────────────
# Upper bound on events delivered by a single dispatcher run.
OUTBOX_BATCH_SIZE: int = 100


def get_workload_cap() -> int:
    """
    Return the configured workload cap.

    Read once per engine construction; a running transition never sees
    a changed value.
    """
    workflow_settings = getattr(settings, "CASE_WORKFLOW", {}) or {}
    cap = int(workflow_settings.get("WORKLOAD_CAP", DEFAULT_WORKLOAD_CAP))
    if cap < 1:
        raise ValueError(f"CASE_WORKFLOW['WORKLOAD_CAP'] must be positive, got {cap}.")
    return cap
