"""Cooperative cancellation signal shared between a caller and the scheduler."""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe one-shot cancellation flag.

    The scheduler sleeps on the token, so cancelling wakes it up immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)
