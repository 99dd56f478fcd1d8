"""
Synchronous event bus for TWAP domain events.

Events are dispatched on the emitting thread, in sink registration order.
A sink that raises is logged and skipped; the remaining sinks still see the
event and the slice being executed is unaffected.
"""
from __future__ import annotations

import logging
from typing import Iterable, Protocol, Union

from lop_twap.core.events.events import PlanBuiltEvent, RunFinishedEvent, SliceTransitionEvent

LOGGER = logging.getLogger(__name__)

TwapEvent = Union[SliceTransitionEvent, PlanBuiltEvent, RunFinishedEvent]


class EventSink(Protocol):
    def on_event(self, event: TwapEvent) -> None:
        """Consume a domain event."""


class EventBus:
    """Fans TWAP events out to sinks until closed."""

    def __init__(self, sinks: Iterable[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks) if sinks is not None else []
        self._emitted = 0
        self._closed = False

    @property
    def emitted(self) -> int:
        """Number of events dispatched so far."""
        return self._emitted

    def register(self, sink: EventSink) -> None:
        if self._closed:
            raise RuntimeError("cannot register a sink on a closed event bus")
        self._sinks.append(sink)

    def emit(self, event: TwapEvent) -> None:
        if self._closed:
            LOGGER.debug("Event emitted after close dropped", extra={"event_type": type(event).__name__})
            return

        self._emitted += 1
        for sink in self._sinks:
            try:
                sink.on_event(event)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception(
                    "Event sink failed",
                    extra={"sink": type(sink).__name__, "event_type": type(event).__name__},
                )

    def close(self) -> None:
        """
        Finalize all sinks that expose a close() method. Idempotent.
        """
        if self._closed:
            return
        self._closed = True

        for sink in self._sinks:
            close_fn = getattr(sink, "close", None)
            if callable(close_fn):
                close_fn()
