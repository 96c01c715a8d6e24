# survey_core/common/api/exceptions.py

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    MethodNotAllowed,
    NotAuthenticated,
    NotFound,
    ParseError,
    PermissionDenied,
    UnsupportedMediaType,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "VALIDATION_ERROR"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
CONFLICT = "CONFLICT"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
INTERNAL_ERROR = "INTERNAL_ERROR"


def ensure_request_id(request) -> str:
    """
    Ensures request has a stable request_id attribute and returns it.
    Safe to call from middleware and DRF exception handler.
    """
    rid = getattr(request, "request_id", None) if request is not None else None
    if not rid:
        rid = uuid.uuid4().hex
        if request is not None:
            setattr(request, "request_id", rid)
    return rid


def _utc_timestamp() -> str:
    return timezone.now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    """
    Canonical failure envelope.
    Reusable from Django views (JsonResponse) and DRF (Response).
    """
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    error["timestamp"] = _utc_timestamp()
    error["requestId"] = ensure_request_id(request)
    return {"success": False, "error": error}


# ---------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------
class DomainError(APIException):
    """
    Business failure that flows through the global exception handler.
    `details` is rendered verbatim into the envelope.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = VALIDATION_ERROR

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        super().__init__(detail=message or self.default_detail, code=self.default_code)
        self.details = details or None


class ValidationFailed(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed."
    default_code = VALIDATION_ERROR


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found."
    default_code = NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id {resource_id} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Insufficient permissions."
    default_code = FORBIDDEN


class ConflictError(DomainError):
    """
    409 Conflict: duplicate survey on create, stale version on update.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = CONFLICT


class PayloadTooLarge(DomainError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = "File too large."
    default_code = FILE_TOO_LARGE


# ---------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------
def _code_for(exc: Exception, http_status: int) -> str:
    if isinstance(exc, DomainError):
        return exc.default_code
    if isinstance(exc, (ValidationError, ParseError)):
        return VALIDATION_ERROR
    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        return UNAUTHORIZED
    if isinstance(exc, (PermissionDenied, DjangoPermissionDenied)):
        return FORBIDDEN
    if isinstance(exc, (Http404, NotFound)):
        return NOT_FOUND
    if isinstance(exc, MethodNotAllowed):
        return "METHOD_NOT_ALLOWED"
    if isinstance(exc, UnsupportedMediaType):
        return "UNSUPPORTED_MEDIA_TYPE"
    if http_status >= 500:
        return INTERNAL_ERROR
    return "ERROR"


def _flatten_errors(data: Any, prefix: str = "") -> dict[str, str]:
    """
    {"surveyScope": ["This list may not be empty."]} -> {"surveyScope": "This list may not be empty."}
    Nested serializer errors are keyed by dotted path.
    """
    flat: dict[str, str] = {}
    if isinstance(data, dict):
        for key, value in data.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flat.update(_flatten_errors(value, path))
    elif isinstance(data, (list, tuple)):
        if data and all(not isinstance(v, (dict, list, tuple)) for v in data):
            flat[prefix or "non_field_errors"] = str(data[0])
        else:
            for i, value in enumerate(data):
                if value:
                    flat.update(_flatten_errors(value, f"{prefix}.{i}" if prefix else str(i)))
    elif data is not None:
        flat[prefix or "non_field_errors"] = str(data)
    return flat


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    # Truly unhandled error
    if response is None:
        logger.exception("Unhandled error: %s", exc)
        return Response(
            build_error_envelope(
                request=request,
                code=INTERNAL_ERROR,
                message="Internal server error",
            ),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    http_status = response.status_code
    code = _code_for(exc, http_status)
    data = response.data

    if isinstance(exc, DomainError):
        message = str(exc.detail)
        details = exc.details
    elif isinstance(exc, ValidationError):
        message = "Validation failed"
        details = {"fields": _flatten_errors(data)}
    elif isinstance(data, dict) and "detail" in data:
        message = str(data.get("detail"))
        rest = {k: v for k, v in data.items() if k != "detail"}
        details = rest or None
    else:
        message = "Request failed."
        details = data

    if http_status >= 500:
        logger.error("Request failed code=%s status=%s message=%s", code, http_status, message)
    else:
        logger.info("Request rejected code=%s status=%s message=%s", code, http_status, message)

    return Response(
        build_error_envelope(
            request=request,
            code=code,
            message=message,
            details=details,
        ),
        status=http_status,
        headers=response.headers,
    )
