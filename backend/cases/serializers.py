"""
Cases app serializers.

Request serializers validate input shape only; every business rule
(state, role, ownership, workload) is enforced by the service layer and
the workflow engine.
"""

from __future__ import annotations

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer

from .models import Case, CaseLog, CasePriority, CaseStatus


# ═══════════════════════════════════════════════════════════════════
#  Case representations
# ═══════════════════════════════════════════════════════════════════


class CaseListSerializer(serializers.ModelSerializer):
    """Compact row for list views."""

    assigned_to = UserSummarySerializer(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "title",
            "priority",
            "status",
            "assigned_to",
            "due_date",
            "is_overdue",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CaseDetailSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "title",
            "description",
            "priority",
            "status",
            "status_display",
            "created_by",
            "assigned_to",
            "due_date",
            "is_overdue",
            "metadata",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CaseCreateSerializer(serializers.ModelSerializer):
    priority = serializers.ChoiceField(
        choices=CasePriority.choices,
        required=False,
        default=CasePriority.MEDIUM,
    )

    class Meta:
        model = Case
        fields = ["title", "description", "priority", "due_date", "metadata"]
        extra_kwargs = {
            "description": {"required": False},
            "due_date": {"required": False},
            "metadata": {"required": False},
        }


class CaseFilterSerializer(serializers.Serializer):
    """Query parameters accepted by ``GET /api/cases/``."""

    status = serializers.ChoiceField(choices=CaseStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=CasePriority.choices, required=False)
    assigned_to = serializers.IntegerField(required=False, min_value=1)
    created_by = serializers.IntegerField(required=False, min_value=1)
    search = serializers.CharField(required=False, max_length=255)
    overdue = serializers.BooleanField(required=False, default=False)


# ═══════════════════════════════════════════════════════════════════
#  Workflow request bodies
# ═══════════════════════════════════════════════════════════════════


class AssignCaseSerializer(serializers.Serializer):
    worker_id = serializers.IntegerField(
        min_value=1,
        help_text="PK of the caseworker the case is offered to.",
    )


class RejectionSerializer(serializers.Serializer):
    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=2000,
        help_text="Optional explanation recorded in the audit trail.",
    )


# ═══════════════════════════════════════════════════════════════════
#  Audit trail / caseworkers
# ═══════════════════════════════════════════════════════════════════


class CaseLogSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = CaseLog
        fields = [
            "id",
            "case",
            "user",
            "action",
            "details",
            "from_status",
            "to_status",
            "created_at",
        ]
        read_only_fields = fields


class CaseNoteSerializer(serializers.Serializer):
    details = serializers.CharField(max_length=5000)


class CaseworkerSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(read_only=True)
    full_name = serializers.CharField(read_only=True)
    active_cases = serializers.IntegerField(read_only=True)
    can_accept_more = serializers.BooleanField(read_only=True)
