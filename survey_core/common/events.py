# survey_core/common/events.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

from django.db import transaction

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator to register an event handler.
    Usage:
        @subscribe("report.created")
        def handler(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        if fn not in _registry[event_name]:
            _registry[event_name].append(fn)
        return fn
    return _decorator


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Publish an event to in-process subscribers.
    Keep payloads ID-based and JSON-safe to avoid cross-app imports.
    """
    handlers = _registry.get(event_name, [])
    logger.debug("publish event=%s handlers=%d", event_name, len(handlers))
    for handler in handlers:
        handler(payload)


def publish_on_commit(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Defer publish until the surrounding transaction commits.
    A rolled-back write never announces itself.
    """
    transaction.on_commit(lambda: publish(event_name, payload))
