"""
Accounts app views.

Thin views: validate input via serializers and return the result wrapped
in a DRF ``Response``.

View Map
--------
- ``LoginView`` : POST /auth/login/
- ``MeView``    : GET  /me/
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import CustomTokenObtainPairSerializer, UserDetailSerializer


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates with username or email plus password
    and returns a JWT pair together with the user's profile.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Obtain a JWT pair",
        request=CustomTokenObtainPairSerializer,
        responses={
            200: OpenApiResponse(description="Access/refresh tokens and the user profile."),
            400: OpenApiResponse(description="Invalid credentials."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = serializer.validated_data
        payload["user"] = UserDetailSerializer(serializer.user).data
        return Response(payload, status=status.HTTP_200_OK)


class MeView(APIView):
    """GET /api/accounts/me/: the authenticated user's profile."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user",
        responses={200: UserDetailSerializer},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        return Response(UserDetailSerializer(request.user).data, status=status.HTTP_200_OK)
