"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

Domain exceptions raised by the services are rendered by
``core.domain.exception_handler``.

ViewSets
--------
- ``CaseViewSet``: the single ViewSet for all case endpoints.  Each
  workflow transition is a ``POST`` @action on the case resource.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    AssignCaseSerializer,
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    CaseLogSerializer,
    CaseNoteSerializer,
    CaseworkerSerializer,
    RejectionSerializer,
)
from .services import (
    CaseCreationService,
    CaseLogService,
    CaseQueryService,
    CaseWorkflowService,
    CaseworkerQueryService,
)
from .workflow import WorkflowAction

logger = logging.getLogger(__name__)

_TRANSITION_ERRORS = {
    401: OpenApiResponse(description="Caller unknown or inactive."),
    403: OpenApiResponse(description="Role or ownership does not allow this action."),
    404: OpenApiResponse(description="Case not found."),
    409: OpenApiResponse(description="Case is not in the required state, or changed concurrently."),
}


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined; cases change only through the workflow actions.
    """

    permission_classes = [IsAuthenticated]

    def _transition(
        self,
        request: Request,
        pk,
        workflow_action: WorkflowAction,
        body_serializer=None,
    ) -> Response:
        params = {}
        if body_serializer is not None:
            serializer = body_serializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            params = serializer.validated_data
        case = CaseWorkflowService.execute(workflow_action, pk, request.user, **params)
        return Response(
            CaseDetailSerializer(case, context={"request": request}).data,
            status=status.HTTP_200_OK,
        )

    # ── CRUD ──────────────────────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description=(
            "Return the cases visible to the caller.  Administrators and "
            "managers see every case; caseworkers see their own."
        ),
        parameters=[
            OpenApiParameter("status", str, description="Filter by status."),
            OpenApiParameter("priority", str, description="Filter by priority."),
            OpenApiParameter("assigned_to", int, description="Filter by assignee PK."),
            OpenApiParameter("created_by", int, description="Filter by creator PK."),
            OpenApiParameter("search", str, description="Search title and description."),
            OpenApiParameter("overdue", bool, description="Only overdue cases."),
        ],
        responses={200: CaseListSerializer(many=True)},
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        queryset = CaseQueryService.get_visible_cases(
            request.user,
            filter_serializer.validated_data,
        )
        serializer = CaseListSerializer(queryset, many=True, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Open a case",
        description="Create a new unassigned case in OPEN status.  ADMIN or MANAGER only.",
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case created."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Caller may not open cases."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        serializer = CaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseCreationService.create_case(serializer.validated_data, request.user)
        out = CaseDetailSerializer(case, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve case details",
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Full case detail."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def retrieve(self, request: Request, pk=None) -> Response:
        case = CaseQueryService.get_case_detail(pk, request.user)
        serializer = CaseDetailSerializer(case, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Workflow @actions ─────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="assign")
    @extend_schema(
        summary="Assign an open case",
        description=(
            "Offer an OPEN case to an active caseworker (status → PENDING). "
            "ADMIN or MANAGER only; the caseworker must be below the workload cap."
        ),
        request=AssignCaseSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case assigned."),
            422: OpenApiResponse(description="Invalid target or workload cap reached."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def assign(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.ASSIGN, AssignCaseSerializer)

    @action(detail=True, methods=["post"], url_path="reassign")
    @extend_schema(
        summary="Reassign a declined case",
        description="Same rules as assign; only possible while the case has no assignee.",
        request=AssignCaseSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case reassigned."),
            422: OpenApiResponse(description="Invalid target or workload cap reached."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def reassign(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.REASSIGN, AssignCaseSerializer)

    @action(detail=True, methods=["post"], url_path="accept")
    @extend_schema(
        summary="Accept an assignment",
        description="The assignee starts work on a PENDING case (status → IN_PROGRESS).",
        request=None,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case accepted."),
            422: OpenApiResponse(description="Workload cap reached."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def accept(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.ACCEPT)

    @action(detail=True, methods=["post"], url_path="reject")
    @extend_schema(
        summary="Decline an assignment",
        description="The assignee declines a PENDING case; it returns to OPEN unassigned.",
        request=RejectionSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Assignment declined."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def reject(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.REJECT, RejectionSerializer)

    @action(detail=True, methods=["post"], url_path="request-completion")
    @extend_schema(
        summary="Request completion",
        description="The assignee submits an IN_PROGRESS case for review (→ PENDING_COMPLETION).",
        request=None,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Completion requested."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def request_completion(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.REQUEST_COMPLETION)

    @action(detail=True, methods=["post"], url_path="approve")
    @extend_schema(
        summary="Approve completion",
        description="ADMIN or MANAGER closes a PENDING_COMPLETION case (→ COMPLETED).",
        request=None,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case completed."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def approve(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.APPROVE)

    @action(detail=True, methods=["post"], url_path="reject-completion")
    @extend_schema(
        summary="Reject completion",
        description="ADMIN or MANAGER sends a PENDING_COMPLETION case back to IN_PROGRESS.",
        request=RejectionSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Completion rejected."),
            **_TRANSITION_ERRORS,
        },
        tags=["Cases - Workflow"],
    )
    def reject_completion(self, request: Request, pk=None) -> Response:
        return self._transition(request, pk, WorkflowAction.REJECT_COMPLETION, RejectionSerializer)

    # ── Sub-resource @actions ─────────────────────────────────────────

    @action(detail=True, methods=["get", "post"], url_path="logs")
    @extend_schema(
        methods=["GET"],
        summary="Case audit trail",
        responses={200: CaseLogSerializer(many=True)},
        tags=["Cases - Logs"],
    )
    @extend_schema(
        methods=["POST"],
        summary="Add a note",
        request=CaseNoteSerializer,
        responses={
            201: OpenApiResponse(response=CaseLogSerializer, description="Note recorded."),
            403: OpenApiResponse(description="Caller may not annotate cases."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases - Logs"],
    )
    def logs(self, request: Request, pk=None) -> Response:
        if request.method == "GET":
            logs = CaseLogService.list_logs(pk, request.user)
            return Response(CaseLogSerializer(logs, many=True).data, status=status.HTTP_200_OK)

        serializer = CaseNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        log = CaseLogService.add_note(pk, request.user, serializer.validated_data["details"])
        return Response(CaseLogSerializer(log).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], url_path="caseworkers")
    @extend_schema(
        summary="Available caseworkers",
        description="Active caseworkers with their active-case count, least loaded first.",
        responses={
            200: CaseworkerSerializer(many=True),
            403: OpenApiResponse(description="Caller may not assign cases."),
        },
        tags=["Cases"],
    )
    def caseworkers(self, request: Request) -> Response:
        workers = CaseworkerQueryService.available_caseworkers(request.user)
        return Response(CaseworkerSerializer(workers, many=True).data, status=status.HTTP_200_OK)
