"""
Tests for role resolution on ``User`` and the ``normalize_roles``
management command.
"""

from __future__ import annotations

from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from accounts.services import UserIdentityProvider
from core.domain.identity import UserRole
from core.permissions_constants import CasesPerms

User = get_user_model()


class TestUserRoles(TestCase):

    def test_current_and_legacy_names(self):
        cases = {
            "ADMIN": UserRole.ADMIN,
            "CLERK": UserRole.ADMIN,
            "manager": UserRole.MANAGER,
            "CHAIR": UserRole.MANAGER,
            "CASEWORKER": UserRole.CASEWORKER,
            "USER": UserRole.CASEWORKER,
            "": None,
            "JANITOR": None,
        }
        for stored, expected in cases.items():
            with self.subTest(stored=stored):
                user = User(username=f"u_{stored or 'blank'}", role=stored)
                self.assertEqual(user.workflow_role, expected)

    def test_has_role(self):
        user = User(username="chair", role="CHAIR")
        self.assertTrue(user.has_role(UserRole.MANAGER))
        self.assertTrue(user.has_role("chair"))
        self.assertFalse(user.has_role(UserRole.ADMIN))

    def test_inactive_user_holds_no_capabilities(self):
        user = User(username="gone", role="ADMIN", is_active=False)
        self.assertEqual(user.permissions_list, [])

    def test_capabilities_follow_role(self):
        worker = User(username="w", role="CASEWORKER")
        self.assertIn(CasesPerms.CAN_WORK_CASES, worker.capabilities)
        self.assertNotIn(CasesPerms.CAN_ASSIGN_CASE, worker.capabilities)

    def test_identity_provider_resolves_users(self):
        user = User.objects.create_user(username="resolved", password="x", role="USER")

        view = UserIdentityProvider().resolve(user.pk)

        self.assertEqual(view.id, user.pk)
        self.assertEqual(view.role, UserRole.CASEWORKER)
        self.assertTrue(view.is_active)
        self.assertIsNone(UserIdentityProvider().resolve(987654))
        self.assertIsNone(UserIdentityProvider().resolve("not-an-id"))

    def test_stored_names_include_legacy_aliases(self):
        self.assertEqual(UserRole.stored_names([UserRole.MANAGER]), ["CHAIR", "MANAGER"])


class TestNormalizeRolesCommand(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.clerk = User.objects.create_user(username="old_clerk", password="x", role="CLERK")
        cls.chair = User.objects.create_user(username="old_chair", password="x", role="CHAIR")
        cls.plain = User.objects.create_user(username="old_user", password="x", role="USER")
        cls.current = User.objects.create_user(username="new_admin", password="x", role="ADMIN")
        cls.odd = User.objects.create_user(username="odd_role", password="x", role="JANITOR")

    def _run(self, *args) -> str:
        out = StringIO()
        call_command("normalize_roles", *args, stdout=out)
        return out.getvalue()

    def test_rewrites_legacy_names(self):
        output = self._run()

        roles = dict(User.objects.values_list("username", "role"))
        self.assertEqual(roles["old_clerk"], "ADMIN")
        self.assertEqual(roles["old_chair"], "MANAGER")
        self.assertEqual(roles["old_user"], "CASEWORKER")
        self.assertEqual(roles["new_admin"], "ADMIN")
        self.assertEqual(roles["odd_role"], "JANITOR")
        self.assertIn("Updated 3 user(s).", output)
        self.assertIn("odd_role", output)

    def test_is_idempotent(self):
        self._run()
        self.assertIn("Updated 0 user(s).", self._run())

    def test_dry_run_writes_nothing(self):
        output = self._run("--dry-run")

        self.assertIn("Would update 3 user(s).", output)
        self.clerk.refresh_from_db()
        self.assertEqual(self.clerk.role, "CLERK")
