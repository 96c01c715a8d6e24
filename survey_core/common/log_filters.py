# survey_core/common/log_filters.py
from __future__ import annotations

import logging
from contextvars import ContextVar

# Set by RequestIdMiddleware for the lifetime of one request.
current_request_id: ContextVar[str] = ContextVar("current_request_id", default="-")


class RequestIdFilter(logging.Filter):
    """
    Stamps every record with the id of the request being served ("-" outside a request).
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = current_request_id.get()
        return True
