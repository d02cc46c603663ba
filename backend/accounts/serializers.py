"""
Accounts app serializers.

Login issues a SimpleJWT token pair whose access token carries the
caller's role and capability list, so clients can render role-aware UI
without another round trip.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import authenticate
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import User


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    SimpleJWT serializer that:

    1. Accepts ``identifier`` + ``password`` instead of
       ``username`` + ``password``.
    2. Resolves the user via the ``MultiFieldAuthBackend``.
    3. Injects ``role`` and ``permissions_list`` claims into the token.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Username or Email.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        role = user.workflow_role
        token["role"] = role.value if role else None
        token["permissions_list"] = user.permissions_list
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        user = authenticate(
            request=self.context.get("request"),
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
        )

        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )

        refresh = self.get_token(user)
        self.user = user
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation nested inside case payloads."""

    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "role"]
        read_only_fields = fields

    def get_full_name(self, obj: User) -> str:
        return obj.get_full_name() or obj.username


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (login response and ``me``).

    ``permissions`` is a read-only flat list such as
    ``['cases.can_assign_case', 'cases.can_annotate_case']``.
    """

    role = serializers.SerializerMethodField()
    permissions = serializers.ListField(
        child=serializers.CharField(),
        source="permissions_list",
        read_only=True,
        help_text="Capabilities granted by the user's role.",
    )

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "is_active",
            "date_joined",
            "role",
            "permissions",
        ]
        read_only_fields = fields

    def get_role(self, obj: User) -> str | None:
        role = obj.workflow_role
        return role.value if role else None
