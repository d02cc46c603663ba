"""
Integration tests for multi-field login and the ``me`` endpoint.

Endpoint under test:  POST /api/accounts/auth/login/
                      (named URL: accounts:login)
Request payload:      {"identifier": "<username|email>", "password": "<password>"}
Success response:     HTTP 200, body contains {"access": "...", "refresh": "...",
                      "user": {...}}
Failure response:     HTTP 400, serializer raises ValidationError when
                      credentials are invalid (CustomTokenObtainPairSerializer.validate)
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from core.permissions_constants import CasesPerms

User = get_user_model()

_PASSWORD = "Str0ng!Pass99"

_USER_FIELDS = {
    "username":   "login_test_user",
    "email":      "login_test_user@example.com",
    "first_name": "Login",
    "last_name":  "Tester",
    "role":       "MANAGER",
}


class TestAuthLogin(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(password=_PASSWORD, **_USER_FIELDS)

    def setUp(self):
        self.client = APIClient()
        self.login_url = reverse("accounts:login")

    def _post_login(self, identifier: str, password: str):
        return self.client.post(
            self.login_url,
            {"identifier": identifier, "password": password},
            format="json",
        )

    def _assert_token_shape(self, resp):
        self.assertIn("access", resp.data)
        self.assertIn("refresh", resp.data)
        self.assertIsInstance(resp.data["access"], str)
        self.assertTrue(resp.data["access"])

    # ── Success ─────────────────────────────────────────────────────────

    def test_login_with_username_or_email(self):
        for identifier in (_USER_FIELDS["username"], _USER_FIELDS["email"], _USER_FIELDS["email"].upper()):
            with self.subTest(identifier=identifier):
                resp = self._post_login(identifier, _PASSWORD)

                self.assertEqual(
                    resp.status_code,
                    status.HTTP_200_OK,
                    msg=f"Login with {identifier!r} failed. Body: {resp.data}",
                )
                self._assert_token_shape(resp)
                self.assertEqual(resp.data["user"]["id"], self.user.pk)
                self.assertEqual(resp.data["user"]["role"], "MANAGER")

    def test_access_token_carries_role_and_capabilities(self):
        resp = self._post_login(_USER_FIELDS["username"], _PASSWORD)

        token = AccessToken(resp.data["access"])
        self.assertEqual(token["role"], "MANAGER")
        self.assertIn(CasesPerms.CAN_ASSIGN_CASE, token["permissions_list"])
        self.assertNotIn(CasesPerms.CAN_WORK_CASES, token["permissions_list"])

    def test_refresh_issues_new_access_token(self):
        resp = self._post_login(_USER_FIELDS["username"], _PASSWORD)

        refresh = self.client.post(
            reverse("accounts:token-refresh"),
            {"refresh": resp.data["refresh"]},
            format="json",
        )

        self.assertEqual(refresh.status_code, status.HTTP_200_OK)
        self.assertIn("access", refresh.data)

    # ── Failure ─────────────────────────────────────────────────────────

    def test_wrong_password_rejected(self):
        resp = self._post_login(_USER_FIELDS["username"], "WrongPassword!")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertNotIn("access", resp.data)

    def test_unknown_identifier_rejected(self):
        resp = self._post_login("nobody@example.com", _PASSWORD)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_user_rejected(self):
        User.objects.create_user(
            username="login_inactive",
            email="login_inactive@example.com",
            password=_PASSWORD,
            is_active=False,
        )
        resp = self._post_login("login_inactive", _PASSWORD)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_shared_email_does_not_identify_a_user(self):
        for name in ("twin_a", "twin_b"):
            User.objects.create_user(username=name, email="twins@example.com", password=_PASSWORD)

        resp = self._post_login("twins@example.com", _PASSWORD)

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_fields_rejected(self):
        resp = self.client.post(self.login_url, {"identifier": "login_test_user"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password", resp.data)


class TestMeEndpoint(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.worker = User.objects.create_user(
            username="me_worker",
            email="me_worker@example.com",
            password=_PASSWORD,
            role="CASEWORKER",
        )
        cls.legacy_chair = User.objects.create_user(
            username="me_chair",
            email="me_chair@example.com",
            password=_PASSWORD,
            role="CHAIR",
        )

    def setUp(self):
        self.client = APIClient()
        self.me_url = reverse("accounts:me")

    def _login(self, username: str) -> None:
        resp = self.client.post(
            reverse("accounts:login"),
            {"identifier": username, "password": _PASSWORD},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")

    def test_me_requires_authentication(self):
        resp = self.client.get(self.me_url)
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_returns_profile_and_capabilities(self):
        self._login("me_worker")

        resp = self.client.get(self.me_url)

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["username"], "me_worker")
        self.assertEqual(resp.data["role"], "CASEWORKER")
        self.assertIn(CasesPerms.CAN_WORK_CASES, resp.data["permissions"])
        self.assertNotIn("password", resp.data)

    def test_legacy_role_is_reported_under_current_name(self):
        self._login("me_chair")

        resp = self.client.get(self.me_url)

        self.assertEqual(resp.data["role"], "MANAGER")
        self.assertIn(CasesPerms.CAN_REVIEW_COMPLETION, resp.data["permissions"])
