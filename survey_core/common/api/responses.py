# survey_core/common/api/responses.py
from __future__ import annotations

from typing import Any

from rest_framework import status as http_status
from rest_framework.response import Response


def success_response(
    data: Any,
    *,
    message: str | None = None,
    meta: dict[str, Any] | None = None,
    status: int = http_status.HTTP_200_OK,
    headers: dict[str, str] | None = None,
) -> Response:
    """
    Canonical success envelope: { success, data, message?, meta? }.
    """
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    if meta is not None:
        body["meta"] = meta
    return Response(body, status=status, headers=headers)


def etag_for(version: int) -> dict[str, str]:
    return {"ETag": f'"{version}"'}
