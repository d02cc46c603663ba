"""
Tests for the transactional outbox: ``OutboxDispatcher`` and the
``dispatch_outbox`` management command.
"""

from __future__ import annotations

from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.test import TestCase

from cases.models import Case, CaseStatus
from core.domain.outbox import OutboxDispatcher
from core.models import Notification, OutboxEvent

User = get_user_model()


def _notification_event(case: Case, actor, *, recipient_ids=(), recipient_roles=(), event_type="case_assigned"):
    return OutboxEvent.objects.create(
        kind=OutboxEvent.Kind.NOTIFICATION,
        payload={
            "event_type": event_type,
            "case_id": case.pk,
            "case_title": case.title,
            "actor_id": actor.pk,
            "recipient_ids": list(recipient_ids),
            "recipient_roles": list(recipient_roles),
        },
    )


class TestOutboxDispatcher(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.manager = User.objects.create_user(username="ob_manager", password="x", role="MANAGER")
        cls.legacy_manager = User.objects.create_user(username="ob_chair", password="x", role="CHAIR")
        cls.inactive_manager = User.objects.create_user(
            username="ob_gone", password="x", role="MANAGER", is_active=False,
        )
        cls.worker = User.objects.create_user(username="ob_worker", password="x", role="CASEWORKER")
        cls.case = Case.objects.create(
            title="Rent arrears",
            status=CaseStatus.IN_PROGRESS,
            created_by=cls.manager,
            assigned_to=cls.worker,
        )

    def test_delivers_to_individual_recipients(self):
        event = _notification_event(self.case, self.manager, recipient_ids=[self.worker.pk])

        delivered = OutboxDispatcher().dispatch_pending()

        self.assertEqual(delivered, 1)
        event.refresh_from_db()
        self.assertIsNotNone(event.dispatched_at)
        self.assertEqual(event.attempts, 1)
        notification = Notification.objects.get()
        self.assertEqual(notification.recipient, self.worker)
        self.assertEqual(notification.title, "New Case Assigned")
        self.assertIn("Rent arrears", notification.message)

    def test_role_audience_includes_legacy_names_and_skips_actor(self):
        _notification_event(
            self.case,
            self.worker,
            recipient_ids=[self.worker.pk],
            recipient_roles=["MANAGER"],
            event_type="case_completion_requested",
        )

        OutboxDispatcher().dispatch_pending()

        recipients = set(Notification.objects.values_list("recipient__username", flat=True))
        self.assertEqual(recipients, {"ob_manager", "ob_chair"})

    def test_dispatched_events_are_not_redelivered(self):
        _notification_event(self.case, self.manager, recipient_ids=[self.worker.pk])

        OutboxDispatcher().dispatch_pending()
        self.assertEqual(OutboxDispatcher().dispatch_pending(), 0)
        self.assertEqual(Notification.objects.count(), 1)

    def test_failure_keeps_event_pending(self):
        event = _notification_event(self.case, self.manager, recipient_ids=[self.worker.pk])

        with mock.patch(
            "core.domain.outbox.NotificationService.create",
            side_effect=RuntimeError("mail relay down"),
        ), self.assertLogs("core.domain.outbox", level="ERROR"):
            delivered = OutboxDispatcher().dispatch_pending()

        self.assertEqual(delivered, 0)
        event.refresh_from_db()
        self.assertIsNone(event.dispatched_at)
        self.assertEqual(event.attempts, 1)
        self.assertIn("mail relay down", event.last_error)

        self.assertEqual(OutboxDispatcher().dispatch_pending(), 1)
        event.refresh_from_db()
        self.assertEqual(event.attempts, 2)
        self.assertEqual(event.last_error, "")

    def test_limit_is_respected(self):
        for _ in range(3):
            _notification_event(self.case, self.manager, recipient_ids=[self.worker.pk])

        self.assertEqual(OutboxDispatcher().dispatch_pending(limit=2), 2)
        self.assertEqual(OutboxEvent.objects.filter(dispatched_at__isnull=True).count(), 1)


class TestDispatchOutboxCommand(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.manager = User.objects.create_user(username="cmd_manager", password="x", role="MANAGER")
        cls.worker = User.objects.create_user(username="cmd_worker", password="x", role="CASEWORKER")
        cls.case = Case.objects.create(title="Deposit claim", created_by=cls.manager)

    def test_delivers_pending_events(self):
        _notification_event(self.case, self.manager, recipient_ids=[self.worker.pk])
        out = StringIO()

        call_command("dispatch_outbox", stdout=out)

        self.assertIn("Delivered 1 event(s).", out.getvalue())
        self.assertEqual(Notification.objects.filter(recipient=self.worker).count(), 1)

    def test_reports_remaining_events(self):
        for _ in range(2):
            _notification_event(self.case, self.manager, recipient_ids=[self.worker.pk])
        out = StringIO()

        call_command("dispatch_outbox", "--limit", "1", stdout=out)

        self.assertIn("1 event(s) still pending", out.getvalue())

    def test_rejects_non_positive_limit(self):
        with self.assertRaises(CommandError):
            call_command("dispatch_outbox", "--limit", "0", stdout=StringIO())
