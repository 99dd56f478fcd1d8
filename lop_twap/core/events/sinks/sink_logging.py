"""
Logging event sink.
"""
from __future__ import annotations

import logging
from typing import Any

from lop_twap.core.events.events import event_to_json_obj


class LoggingEventSink:
    """Logs domain events using the standard logging module."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def on_event(self, event: Any) -> None:
        payload = event_to_json_obj(event)
        level = logging.WARNING if payload.get("valid") is False else logging.INFO
        self._logger.log(level, "domain_event %s", payload["type"], extra={"event": payload})
