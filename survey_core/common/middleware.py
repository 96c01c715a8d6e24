# survey_core/common/middleware.py
from __future__ import annotations

import logging
import time

from django.utils.deprecation import MiddlewareMixin

from survey_core.common.api.exceptions import ensure_request_id
from survey_core.common.log_filters import current_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(MiddlewareMixin):
    """
    Assigns every request an id and logs its start and completion.

    - Honors an inbound X-Request-ID, otherwise generates one.
    - Stores it on request.request_id so error envelopes can echo it.
    - Echoes it back in the X-Request-ID response header.
    """

    def process_request(self, request):
        inbound = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        if inbound:
            request.request_id = inbound[:128]
        rid = ensure_request_id(request)

        current_request_id.set(rid)
        request._started_at = time.monotonic()

        logger.info("request started method=%s path=%s", request.method, request.path)
        return None

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response[REQUEST_ID_HEADER] = rid

        started = getattr(request, "_started_at", None)
        duration_ms = (time.monotonic() - started) * 1000 if started is not None else 0.0
        logger.info(
            "request completed method=%s path=%s status=%s duration_ms=%.1f",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
        )

        current_request_id.set("-")
        return response
