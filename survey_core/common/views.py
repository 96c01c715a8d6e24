# survey_core/common/views.py
from __future__ import annotations

import logging

from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema

from survey_core.common.api.exceptions import INTERNAL_ERROR, NOT_FOUND, build_error_envelope

logger = logging.getLogger(__name__)


class HealthView(APIView):
    """
    Liveness check. Public, no envelope.
    """
    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(responses={200: dict}, tags=["Health"])
    def get(self, request):
        return Response(
            {
                "status": "ok",
                "timestamp": timezone.now(),
                "environment": getattr(settings, "ENVIRONMENT", "local"),
            }
        )


def not_found(request, exception=None):
    """
    handler404: unknown routes get the same failure envelope as the API.
    """
    return JsonResponse(
        build_error_envelope(
            request=request,
            code=NOT_FOUND,
            message=f"Route {request.method} {request.path} not found",
        ),
        status=404,
    )


def server_error(request):
    logger.error("Unhandled server error path=%s", request.path)
    return JsonResponse(
        build_error_envelope(request=request, code=INTERNAL_ERROR, message="Internal server error"),
        status=500,
    )
