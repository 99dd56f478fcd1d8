from __future__ import annotations

from lop_twap.core.events.event_bus import EventBus


class NullEventBus(EventBus):
    """Sink-less bus used when a caller does not observe planning or execution.

    Events are still counted, so ``emitted`` stays meaningful.
    """

    def __init__(self) -> None:
        super().__init__(sinks=())
