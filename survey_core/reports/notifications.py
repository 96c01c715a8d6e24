# survey_core/reports/notifications.py
"""
report.created side channel.

Simulates a slow, occasionally failing external notifier. Runs on a detached
daemon thread after the creating transaction commits; its outcome never
reaches the HTTP response. Failures are logged, not retried.
"""
from __future__ import annotations

import contextvars
import logging
import random
import threading
import time
from typing import Any, Dict

from django.conf import settings

from survey_core.common.events import subscribe

logger = logging.getLogger(__name__)

REPORT_CREATED = "report.created"


class NotificationUnavailable(Exception):
    """Transient failure of the notification service."""


def send_report_created_notification(payload: Dict[str, Any], actor_id: str | None, *, rng=random) -> None:
    delay = float(getattr(settings, "NOTIFICATION_DELAY_SECONDS", 0.1))
    failure_rate = float(getattr(settings, "NOTIFICATION_FAILURE_RATE", 0.1))

    if delay > 0:
        time.sleep(delay)

    if rng.random() < failure_rate:
        raise NotificationUnavailable("Notification service temporarily unavailable")

    logger.info(
        "notification sent: new %s survey for facility %s by %s report_id=%s",
        payload.get("survey_type"),
        payload.get("facility_id"),
        actor_id,
        payload.get("report_id"),
    )


def _deliver(payload: Dict[str, Any]) -> None:
    try:
        send_report_created_notification(payload, payload.get("actor_id"))
    except Exception as exc:
        # Best effort: logged, never raised.
        logger.warning("notification failed report_id=%s error=%s", payload.get("report_id"), exc)


def dispatch_report_created(payload: Dict[str, Any]) -> threading.Thread:
    """
    Fire and forget. The thread inherits the request's logging context.
    """
    ctx = contextvars.copy_context()
    thread = threading.Thread(
        target=ctx.run,
        args=(_deliver, payload),
        name=f"notify-{payload.get('report_id')}",
        daemon=True,
    )
    thread.start()
    return thread


@subscribe(REPORT_CREATED)
def on_report_created(payload: Dict[str, Any]) -> None:
    dispatch_report_created(payload)
