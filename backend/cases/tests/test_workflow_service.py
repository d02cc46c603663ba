"""
Service-layer tests for the case workflow against the database.

Exercises ``CaseWorkflowService`` (engine + ORM store + event sink),
the transactional outbox, case visibility, notes and the caseworker
listing.  Notification delivery runs inside
``captureOnCommitCallbacks(execute=True)`` because ``TestCase`` never
commits.
"""

from __future__ import annotations

from dataclasses import replace
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase

from cases.models import Case, CaseLog, CaseLogAction, CaseStatus
from cases.services import (
    CaseCreationService,
    CaseLogService,
    CaseQueryService,
    CaseWorkflowService,
    CaseworkerQueryService,
)
from cases.stores import OrmCaseStore, case_to_record
from cases.workflow import count_active_cases
from core.domain.exceptions import (
    DomainError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    StaleCaseVersion,
    Unauthorized,
    WorkloadExceeded,
)
from core.models import Notification, OutboxEvent

User = get_user_model()


def _user(username: str, role: str, **extra) -> User:
    return User.objects.create_user(
        username=username,
        password="Workflow!Pass1",
        email=f"{username}@example.com",
        role=role,
        **extra,
    )


class WorkflowServiceTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = _user("svc_admin", "ADMIN")
        cls.manager = _user("svc_manager", "MANAGER")
        cls.worker = _user("svc_worker", "CASEWORKER", first_name="Wren", last_name="Walker")
        cls.other_worker = _user("svc_other_worker", "CASEWORKER")

    def open_case(self, title: str = "Tenancy deposit dispute", **extra) -> Case:
        return CaseCreationService.create_case({"title": title, **extra}, self.manager)

    def held_case(self, worker, status: str, title: str = "Existing case") -> Case:
        return Case.objects.create(
            title=title,
            status=status,
            created_by=self.manager,
            assigned_to=worker,
        )


class TestCaseCreation(WorkflowServiceTestBase):

    def test_manager_opens_unassigned_case_with_log(self):
        case = self.open_case(priority="HIGH")

        self.assertEqual(case.status, CaseStatus.OPEN)
        self.assertIsNone(case.assigned_to)
        self.assertEqual(case.version, 0)
        self.assertEqual(case.priority, "HIGH")
        log = case.logs.get()
        self.assertEqual(log.action, CaseLogAction.CREATED)
        self.assertEqual(log.user, self.manager)

    def test_caseworker_cannot_open_case(self):
        with self.assertRaises(PermissionDenied):
            CaseCreationService.create_case({"title": "Nope"}, self.worker)
        self.assertFalse(Case.objects.exists())


class TestWorkflowTransitions(WorkflowServiceTestBase):

    def test_assign_persists_case_log_and_outbox_row(self):
        case = self.open_case()

        updated = CaseWorkflowService.assign(case.pk, self.manager, self.worker.pk)

        self.assertEqual(updated.status, CaseStatus.PENDING)
        self.assertEqual(updated.assigned_to, self.worker)
        self.assertEqual(updated.version, 1)

        log = CaseLog.objects.filter(case=case, action=CaseLogAction.ASSIGNED).get()
        self.assertEqual(log.user, self.manager)
        self.assertEqual((log.from_status, log.to_status), ("OPEN", "PENDING"))

        event = OutboxEvent.objects.get()
        self.assertEqual(event.payload["event_type"], "case_assigned")
        self.assertEqual(event.payload["recipient_ids"], [self.worker.pk])

    def test_assignment_notification_delivered_after_commit(self):
        case = self.open_case()

        with self.captureOnCommitCallbacks(execute=True):
            CaseWorkflowService.assign(case.pk, self.manager, self.worker.pk)

        notification = Notification.objects.get(recipient=self.worker)
        self.assertEqual(notification.event_type, "case_assigned")
        self.assertIn(str(case.pk), notification.message)
        self.assertEqual(notification.object_id, case.pk)
        self.assertIsNotNone(OutboxEvent.objects.get().dispatched_at)

    def test_dispatch_failure_after_commit_does_not_fail_transition(self):
        case = self.open_case()

        with mock.patch(
            "core.domain.outbox.OutboxDispatcher.dispatch_pending",
            side_effect=DatabaseError("connection reset"),
        ), self.assertLogs("django", level="ERROR"):
            with self.captureOnCommitCallbacks(execute=True):
                updated = CaseWorkflowService.assign(case.pk, self.manager, self.worker.pk)

        self.assertEqual(updated.status, CaseStatus.PENDING)
        self.assertFalse(Notification.objects.exists())
        self.assertIsNone(OutboxEvent.objects.get().dispatched_at)

    def test_full_lifecycle(self):
        case = self.open_case()

        CaseWorkflowService.assign(case.pk, self.manager, self.worker.pk)
        CaseWorkflowService.accept(case.pk, self.worker)
        CaseWorkflowService.request_completion(case.pk, self.worker)
        CaseWorkflowService.reject_completion(case.pk, self.admin, reason="Attach the ruling")
        CaseWorkflowService.request_completion(case.pk, self.worker)
        done = CaseWorkflowService.approve(case.pk, self.admin)

        self.assertEqual(done.status, CaseStatus.COMPLETED)
        self.assertIsNone(done.assigned_to)
        self.assertEqual(done.metadata["former_assignee_id"], self.worker.pk)
        self.assertEqual(done.metadata["completed_by"], self.admin.pk)
        self.assertEqual(done.version, 6)

        actions = list(case.logs.order_by("created_at", "id").values_list("action", flat=True))
        self.assertEqual(
            actions,
            [
                CaseLogAction.CREATED,
                CaseLogAction.ASSIGNED,
                CaseLogAction.ACCEPTED,
                CaseLogAction.COMPLETION_REQUESTED,
                CaseLogAction.COMPLETION_REJECTED,
                CaseLogAction.COMPLETION_REQUESTED,
                CaseLogAction.APPROVED,
            ],
        )
        rejection = case.logs.get(action=CaseLogAction.COMPLETION_REJECTED)
        self.assertTrue(rejection.details.endswith(": Attach the ruling"))

    def test_reject_then_reassign(self):
        case = self.open_case()
        CaseWorkflowService.assign(case.pk, self.manager, self.worker.pk)

        reopened = CaseWorkflowService.reject(case.pk, self.worker, reason="On leave")
        self.assertEqual(reopened.status, CaseStatus.OPEN)
        self.assertIsNone(reopened.assigned_to)

        reassigned = CaseWorkflowService.reassign(case.pk, self.manager, self.other_worker.pk)
        self.assertEqual(reassigned.assigned_to, self.other_worker)
        self.assertEqual(reassigned.status, CaseStatus.PENDING)

    def test_denied_transition_leaves_no_trace(self):
        case = self.open_case()

        with self.assertRaises(PermissionDenied):
            CaseWorkflowService.assign(case.pk, self.worker, self.other_worker.pk)

        case.refresh_from_db()
        self.assertEqual(case.status, CaseStatus.OPEN)
        self.assertEqual(case.version, 0)
        self.assertEqual(case.logs.count(), 1)
        self.assertFalse(OutboxEvent.objects.exists())

    def test_second_approval_is_invalid(self):
        case = self.held_case(self.worker, CaseStatus.PENDING_COMPLETION)
        CaseWorkflowService.approve(case.pk, self.manager)

        with self.assertRaises(InvalidTransition):
            CaseWorkflowService.approve(case.pk, self.manager)

    def test_workload_cap_from_settings(self):
        with self.settings(CASE_WORKFLOW={"WORKLOAD_CAP": 2}):
            self.held_case(self.worker, CaseStatus.PENDING)
            self.held_case(self.worker, CaseStatus.IN_PROGRESS)
            case = self.open_case()

            with self.assertRaises(WorkloadExceeded) as ctx:
                CaseWorkflowService.assign(case.pk, self.manager, self.worker.pk)

        self.assertEqual((ctx.exception.count, ctx.exception.cap), (2, 2))

    def test_inactive_caller_is_unauthorized(self):
        ghost = _user("svc_ghost", "MANAGER", is_active=False)
        case = self.open_case()
        with self.assertRaises(Unauthorized):
            CaseWorkflowService.assign(case.pk, ghost, self.worker.pk)

    def test_missing_case(self):
        with self.assertRaises(NotFound):
            CaseWorkflowService.accept(999999, self.worker)

    def test_legacy_role_names_still_work(self):
        chair = _user("svc_chair", "CHAIR")
        legacy_worker = _user("svc_legacy_worker", "USER")
        case = self.open_case()

        updated = CaseWorkflowService.assign(case.pk, chair, legacy_worker.pk)

        self.assertEqual(updated.assigned_to, legacy_worker)

    def test_completion_request_reaches_managers_only(self):
        case = self.held_case(self.worker, CaseStatus.IN_PROGRESS)

        with self.captureOnCommitCallbacks(execute=True):
            CaseWorkflowService.request_completion(case.pk, self.worker)

        recipients = set(
            Notification.objects.filter(event_type="case_completion_requested")
            .values_list("recipient__username", flat=True)
        )
        self.assertEqual(recipients, {"svc_manager"})


class TestOrmCaseStore(WorkflowServiceTestBase):

    def test_compare_and_swap_rejects_stale_version(self):
        case = self.open_case()
        store = OrmCaseStore(lock_rows=False)
        snapshot = store.get(case.pk)
        newer = case_to_record(case)

        assigned = replace(
            newer, status=CaseStatus.PENDING, assignee_id=self.worker.pk, version=1,
        )
        self.assertTrue(store.compare_and_swap(case.pk, snapshot.version, assigned))
        self.assertFalse(store.compare_and_swap(case.pk, snapshot.version, assigned))

        case.refresh_from_db()
        self.assertEqual(case.version, 1)
        self.assertEqual(case.assigned_to, self.worker)

    def test_count_assigned(self):
        self.held_case(self.worker, CaseStatus.PENDING)
        self.held_case(self.worker, CaseStatus.IN_PROGRESS)
        self.held_case(self.worker, CaseStatus.PENDING_COMPLETION)

        store = OrmCaseStore()
        self.assertEqual(store.count_assigned(self.worker.pk, [CaseStatus.PENDING, CaseStatus.IN_PROGRESS]), 2)
        self.assertEqual(count_active_cases(store, self.worker.pk), 2)
        self.assertEqual(count_active_cases(store, self.other_worker.pk), 0)

    def test_missing_case_returns_none(self):
        self.assertIsNone(OrmCaseStore().get(424242))

    def test_stale_version_maps_to_exception(self):
        exc = StaleCaseVersion(5, 3)
        self.assertEqual(exc.code, "stale_case_version")
        self.assertIn("expected version 3", exc.message)


class TestVisibilityAndNotes(WorkflowServiceTestBase):

    def test_caseworker_sees_assigned_and_completed_cases(self):
        mine = self.held_case(self.worker, CaseStatus.IN_PROGRESS, title="Mine")
        theirs = self.held_case(self.other_worker, CaseStatus.IN_PROGRESS, title="Theirs")
        finished = self.held_case(self.worker, CaseStatus.PENDING_COMPLETION, title="Finished")
        CaseWorkflowService.approve(finished.pk, self.manager)

        visible = set(CaseQueryService.get_visible_cases(self.worker).values_list("pk", flat=True))

        self.assertEqual(visible, {mine.pk, finished.pk})
        with self.assertRaises(NotFound):
            CaseQueryService.get_case_detail(theirs.pk, self.worker)

    def test_manager_sees_everything_and_filters(self):
        self.held_case(self.worker, CaseStatus.IN_PROGRESS, title="Boundary fence")
        self.open_case(title="Noise complaint")

        self.assertEqual(CaseQueryService.get_visible_cases(self.manager).count(), 2)
        by_status = CaseQueryService.get_visible_cases(self.manager, {"status": CaseStatus.OPEN})
        self.assertEqual([c.title for c in by_status], ["Noise complaint"])
        by_search = CaseQueryService.get_visible_cases(self.manager, {"search": "fence"})
        self.assertEqual([c.title for c in by_search], ["Boundary fence"])

    def test_user_without_role_sees_nothing(self):
        nobody = _user("svc_nobody", "")
        self.open_case()
        self.assertFalse(CaseQueryService.get_visible_cases(nobody).exists())

    def test_add_note(self):
        case = self.held_case(self.worker, CaseStatus.IN_PROGRESS)

        log = CaseLogService.add_note(case.pk, self.worker, "  Called the landlord.  ")

        self.assertEqual(log.action, CaseLogAction.NOTE)
        self.assertEqual(log.details, "Called the landlord.")
        self.assertEqual(log.to_status, CaseStatus.IN_PROGRESS)
        self.assertEqual(CaseLogService.list_logs(case.pk, self.worker).first(), log)

    def test_blank_note_rejected(self):
        case = self.open_case()
        with self.assertRaises(DomainError):
            CaseLogService.add_note(case.pk, self.manager, "   ")

    def test_caseworker_cannot_annotate_foreign_case(self):
        case = self.held_case(self.other_worker, CaseStatus.IN_PROGRESS)
        with self.assertRaises(NotFound):
            CaseLogService.add_note(case.pk, self.worker, "peek")


class TestCaseworkerListing(WorkflowServiceTestBase):

    def test_least_loaded_first(self):
        for _ in range(5):
            self.held_case(self.worker, CaseStatus.PENDING)
        self.held_case(self.other_worker, CaseStatus.IN_PROGRESS)
        _user("svc_inactive_worker", "CASEWORKER", is_active=False)

        rows = CaseworkerQueryService.available_caseworkers(self.manager)

        self.assertEqual([r["username"] for r in rows], ["svc_other_worker", "svc_worker"])
        self.assertEqual(rows[0]["active_cases"], 1)
        self.assertTrue(rows[0]["can_accept_more"])
        self.assertEqual(rows[1]["active_cases"], 5)
        self.assertFalse(rows[1]["can_accept_more"])
        self.assertEqual(rows[1]["full_name"], "Wren Walker")

    def test_caseworker_cannot_list(self):
        with self.assertRaises(PermissionDenied):
            CaseworkerQueryService.available_caseworkers(self.worker)
