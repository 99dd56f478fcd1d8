"""Timed, strictly sequential execution of a TWAP plan.

Slice ``i`` becomes eligible at ``plan_start + i * interval_seconds``. The
scheduler sleeps on the cancellation token until then, runs the fill, records
the outcome and moves on. There is never more than one slice in flight and
no slice is retried: a failed slice stays failed and the plan continues.
Eligibility and fill deadlines run on a monotonic timer; the wall clock only
stamps records and events.

Per-slice lifecycle (see slice_state_machine):

    pending -> executing -> succeeded | failed
    pending -> cancelled
"""

# pylint: disable=too-many-arguments
from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable

from lop_twap.core.domain.slice_state_machine import is_valid_transition
from lop_twap.core.domain.types import FillResult
from lop_twap.core.events.events import SliceTransitionEvent
from lop_twap.core.execution.cancellation import CancellationToken

if TYPE_CHECKING:
    from lop_twap.core.domain.types import ExecutionSummary, PlannedSlice, SignedOrder, TwapPlan
    from lop_twap.core.events.event_bus import EventBus
    from lop_twap.core.execution.reporter import ExecutionReporter
    from lop_twap.core.ports.fill_backend import FillFunction

LOGGER = logging.getLogger(__name__)

CANCELLED_DURING_FILL: str = "cancelled while awaiting fill"


class _FillCall:
    """Runs one fill call on a daemon thread so that it can be abandoned."""

    def __init__(self, fill: FillFunction, signed_order: SignedOrder) -> None:
        self._fill = fill
        self._signed_order = signed_order
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._abandoned = False
        self._result: FillResult | None = None
        self._thread = threading.Thread(target=self._run, name="twap-fill", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        try:
            self._result = FillResult.from_obj(self._fill(self._signed_order))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Fill call raised", extra={"order_hash": self._signed_order.order_hash})
            self._result = FillResult(success=False, error=f"{type(exc).__name__}: {exc}")
        finally:
            with self._lock:
                self._done.set()
                abandoned = self._abandoned
            if abandoned:
                self._log_late_result()

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)

    def abandon(self) -> None:
        """Stop waiting for the call. Its outcome, once known, is only logged."""
        with self._lock:
            self._abandoned = True
            finished = self._done.is_set()
        if finished:
            self._log_late_result()

    def _log_late_result(self) -> None:
        outcome = self._result
        LOGGER.warning(
            "Abandoned fill completed: success=%s",
            outcome.success if outcome is not None else None,
            extra={
                "order_hash": self._signed_order.order_hash,
                "reference": outcome.reference if outcome is not None else None,
            },
        )

    @property
    def result(self) -> FillResult:
        if self._result is None:
            raise RuntimeError("fill call has not completed")
        return self._result


class SliceScheduler:
    """Drives the slices of one plan through the fill function, in index order."""

    def __init__(
        self,
        *,
        fill: FillFunction,
        reporter: ExecutionReporter,
        event_bus: EventBus,
        cancellation: CancellationToken | None = None,
        fill_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.monotonic,
        poll_interval_seconds: float = 0.05,
    ) -> None:
        if fill_timeout_seconds is not None and fill_timeout_seconds <= 0:
            raise ValueError("fill_timeout_seconds must be > 0")

        self._fill = fill
        self._reporter = reporter
        self._event_bus = event_bus
        self._cancellation = cancellation if cancellation is not None else CancellationToken()
        self._fill_timeout_seconds = fill_timeout_seconds
        self._clock = clock
        self._timer = timer
        self._poll_interval_seconds = poll_interval_seconds

        self._states: dict[int, str] = {}

    @property
    def cancellation(self) -> CancellationToken:
        return self._cancellation

    # ---- State transitions ----
    def _transition(self, slice_index: int, next_state: str) -> None:
        prev_state = self._states.get(slice_index)
        valid = is_valid_transition(prev_state, next_state)
        if not valid:
            LOGGER.warning(
                "Unexpected slice transition %s -> %s",
                prev_state,
                next_state,
                extra={"slice_index": slice_index},
            )
        self._states[slice_index] = next_state
        self._event_bus.emit(
            SliceTransitionEvent(
                ts=self._clock(),
                slice_index=slice_index,
                prev_state=prev_state,
                next_state=next_state,
                valid=valid,
            )
        )

    # ---- Main loop ----
    def run(self, plan: TwapPlan) -> ExecutionSummary:
        """Execute every slice of the plan and return the reporter summary."""
        for planned in plan.slices:
            self._transition(planned.index, "pending")

        plan_start = self._timer()
        LOGGER.info(
            "TWAP run started",
            extra={"slice_count": plan.slice_count, "interval_seconds": plan.interval_seconds},
        )

        for planned in plan.slices:
            if self._cancellation.is_cancelled:
                self._cancel_remaining(plan, planned.index)
                break

            eligible_at = plan_start + plan.offset_seconds(planned.index)
            delay = eligible_at - self._timer()
            if delay > 0 and self._cancellation.wait(delay):
                self._cancel_remaining(plan, planned.index)
                break

            if self._cancellation.is_cancelled:
                self._cancel_remaining(plan, planned.index)
                break

            if not self._execute(planned):
                self._cancel_remaining(plan, planned.index + 1)
                break

        self._reporter.flush()
        return self._reporter.summary()

    def _execute(self, planned: PlannedSlice) -> bool:
        """Execute one slice. Returns False if cancellation interrupted the fill."""
        order_hash = planned.signed_order.order_hash if planned.signed_order is not None else None

        self._transition(planned.index, "executing")
        self._reporter.record(
            planned.index,
            "pending",
            making_amount=planned.making_amount,
            order_hash=order_hash,
        )

        if planned.signed_order is None:
            self._finish(planned.index, FillResult(success=False, error=planned.error))
            return True

        outcome = self._await_fill(planned.signed_order)
        if outcome is None:
            self._finish(planned.index, FillResult(success=False, error=CANCELLED_DURING_FILL))
            return False

        self._finish(planned.index, outcome)
        return True

    def _finish(self, slice_index: int, outcome: FillResult) -> None:
        status = "succeeded" if outcome.success else "failed"
        self._transition(slice_index, status)
        self._reporter.record(
            slice_index,
            status,
            reference=outcome.reference,
            error=None if outcome.success else (outcome.error or "fill reported failure"),
        )

    def _await_fill(self, signed_order: SignedOrder) -> FillResult | None:
        """Run the fill bounded by the timeout. Returns None if cancelled first."""
        call = _FillCall(self._fill, signed_order)
        call.start()

        deadline = None
        if self._fill_timeout_seconds is not None:
            deadline = self._timer() + self._fill_timeout_seconds

        while True:
            step = self._poll_interval_seconds
            if deadline is not None:
                remaining = deadline - self._timer()
                if remaining <= 0:
                    call.abandon()
                    return FillResult(
                        success=False,
                        error=f"fill timed out after {self._fill_timeout_seconds}s",
                    )
                step = min(step, remaining)

            if call.wait(step):
                return call.result
            if self._cancellation.is_cancelled:
                # A fill that completed in the meantime still counts.
                if call.wait(0):
                    return call.result
                call.abandon()
                return None

    def _cancel_remaining(self, plan: TwapPlan, first_index: int) -> None:
        for planned in plan.slices[first_index:]:
            self._transition(planned.index, "cancelled")
            self._reporter.record(
                planned.index,
                "cancelled",
                making_amount=planned.making_amount,
                order_hash=planned.signed_order.order_hash if planned.signed_order is not None else None,
            )
        LOGGER.warning(
            "TWAP run cancelled",
            extra={"cancelled_slices": max(plan.slice_count - first_index, 0)},
        )
