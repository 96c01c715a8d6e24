# survey_core/iam/api/auth.py

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from django.conf import settings
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

from drf_spectacular.utils import extend_schema

from survey_core.common.api.responses import success_response
from survey_core.common.permissions import primary_role
from survey_core.iam.api.serializers import (
    LoginRequestSerializer,
    LoginResponseSerializer,
    RefreshRequestSerializer,
    RefreshResponseSerializer,
)
from survey_core.iam.auth import display_name, issue_tokens

logger = logging.getLogger(__name__)


def _seconds(value: Any) -> int:
    """
    Convert a JWT lifetime setting into seconds.
    Supports timedelta OR int/float (already seconds).
    """
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def access_lifetime_label() -> str:
    """
    Human form of ACCESS_TOKEN_LIFETIME, e.g. "24h" or "15m".
    """
    jwt_cfg = getattr(settings, "SIMPLE_JWT", {}) or {}
    seconds = _seconds(jwt_cfg.get("ACCESS_TOKEN_LIFETIME", timedelta(minutes=5)))
    if seconds and seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds and seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


class LoginView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        request=LoginRequestSerializer,
        responses={200: LoginResponseSerializer},
        tags=["IAM"],
    )
    def post(self, request):
        serializer = LoginRequestSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]

        refresh = issue_tokens(user)
        logger.info("login ok user_id=%s", user.pk)

        return success_response(
            {
                "token": str(refresh.access_token),
                "refreshToken": str(refresh),
                "user": {
                    "id": str(user.pk),
                    "email": user.email,
                    "name": display_name(user),
                    "role": primary_role(user),
                },
                "expiresIn": access_lifetime_label(),
            },
            message="Login successful",
        )


class RefreshView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        request=RefreshRequestSerializer,
        responses={200: RefreshResponseSerializer},
        tags=["IAM"],
    )
    def post(self, request):
        body = RefreshRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        serializer = TokenRefreshSerializer(data={"refresh": body.validated_data["refreshToken"]})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0])

        return success_response(
            {
                "token": serializer.validated_data["access"],
                "expiresIn": access_lifetime_label(),
            }
        )
