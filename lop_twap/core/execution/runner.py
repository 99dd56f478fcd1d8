"""TWAP entry points.

``plan_twap`` builds and signs every slice up front (the plan is frozen once
built). ``execute_plan`` drives a plan through the scheduler. ``run_twap``
does both and is the single entry point exposed to callers.
"""

# pylint: disable=too-many-arguments,too-many-locals
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

from lop_twap.core.domain.errors import InvalidParameters, QuoteError, SigningError
from lop_twap.core.domain.types import PlannedSlice, TwapPlan
from lop_twap.core.events.events import PlanBuiltEvent, RunFinishedEvent
from lop_twap.core.events.sinks.null_event_bus import NullEventBus
from lop_twap.core.execution.reporter import ExecutionReporter
from lop_twap.core.execution.scheduler import SliceScheduler
from lop_twap.core.orders.builder import OrderBuilder, split_amount, validate_plan_inputs
from lop_twap.core.orders.signer import OrderSigner
from lop_twap.core.protocol import lop_v4

if TYPE_CHECKING:
    from lop_twap.core.domain.types import ExecutionSummary
    from lop_twap.core.events.event_bus import EventBus
    from lop_twap.core.execution.cancellation import CancellationToken
    from lop_twap.core.execution.log_sink import ExecutionLogSink
    from lop_twap.core.ports.fill_backend import FillFunction
    from lop_twap.core.ports.quote_provider import QuoteProvider
    from lop_twap.core.ports.signing_backend import SigningBackend

LOGGER = logging.getLogger(__name__)

# Orders stay valid this long after the last slice is scheduled.
DEFAULT_EXPIRY_GRACE_SECONDS: int = 600


def default_expiry_seconds(slice_count: int, interval_seconds: float) -> int:
    """Expiry that keeps every slice's order alive past its scheduled time."""
    return int(slice_count * interval_seconds) + DEFAULT_EXPIRY_GRACE_SECONDS


def validate_run_inputs(total_amount: int, slice_count: int, interval_seconds: float) -> None:
    validate_plan_inputs(total_amount, slice_count)
    if interval_seconds < 0:
        raise InvalidParameters(f"interval_seconds must be >= 0, got {interval_seconds}")


def plan_twap(
    *,
    total_amount: int,
    slice_count: int,
    interval_seconds: float,
    maker_asset: str,
    taker_asset: str,
    builder: OrderBuilder,
    signer: OrderSigner,
    quote: QuoteProvider,
    expiry_duration_seconds: int | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], float] = time.time,
) -> TwapPlan:
    """Build, quote and sign every slice of a TWAP plan.

    Raises InvalidParameters for malformed inputs. Quote and signing failures
    are confined to their slice: the slice is kept in the plan with its error
    and will be recorded as failed when its turn comes.
    """
    validate_run_inputs(total_amount, slice_count, interval_seconds)
    lop_v4.to_address(maker_asset)
    lop_v4.to_address(taker_asset)

    if expiry_duration_seconds is None:
        expiry_duration_seconds = default_expiry_seconds(slice_count, interval_seconds)
    expiration = builder.expiration_for(expiry_duration_seconds)

    slices: list[PlannedSlice] = []
    for index, making_amount in enumerate(split_amount(total_amount, slice_count)):
        try:
            order = builder.build_order(
                making_amount=making_amount,
                maker_asset=maker_asset,
                taker_asset=taker_asset,
                expiration=expiration,
                quote=quote,
            )
            signed_order = signer.sign(order)
        except (QuoteError, SigningError) as exc:
            LOGGER.warning(
                "Slice %d could not be prepared: %s",
                index,
                exc,
                extra={"slice_index": index, "error_type": type(exc).__name__},
            )
            slices.append(
                PlannedSlice(index=index, making_amount=making_amount, error=f"{type(exc).__name__}: {exc}")
            )
            continue

        slices.append(PlannedSlice(index=index, making_amount=making_amount, signed_order=signed_order))

    plan = TwapPlan(
        total_amount=total_amount,
        slice_count=slice_count,
        interval_seconds=interval_seconds,
        slices=tuple(slices),
    )

    executable = sum(1 for planned in plan.slices if planned.is_executable)
    (event_bus or NullEventBus()).emit(
        PlanBuiltEvent(
            ts=clock(),
            total_amount=total_amount,
            slice_count=slice_count,
            interval_seconds=interval_seconds,
            executable_slices=executable,
            failed_slices=slice_count - executable,
        )
    )
    return plan


def execute_plan(
    plan: TwapPlan,
    *,
    fill: FillFunction,
    cancellation: CancellationToken | None = None,
    fill_timeout_seconds: float | None = None,
    execution_log: ExecutionLogSink | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], float] = time.time,
    reporter: ExecutionReporter | None = None,
) -> ExecutionSummary:
    """Execute a built plan slice by slice and return its summary.

    ``execution_log`` is only used when no ``reporter`` is supplied.
    """
    bus = event_bus or NullEventBus()
    if reporter is None:
        reporter = ExecutionReporter(slice_count=plan.slice_count, sink=execution_log, clock=clock)

    scheduler = SliceScheduler(
        fill=fill,
        reporter=reporter,
        event_bus=bus,
        cancellation=cancellation,
        fill_timeout_seconds=fill_timeout_seconds,
        clock=clock,
    )
    summary = scheduler.run(plan)

    bus.emit(
        RunFinishedEvent(
            ts=clock(),
            succeeded=summary.succeeded,
            failed=summary.failed,
            cancelled=summary.cancelled,
            pending=summary.pending,
            executed_amount=summary.executed_amount,
        )
    )
    LOGGER.info(
        "TWAP run finished: %d/%d slices succeeded",
        summary.succeeded,
        summary.total_slices,
        extra={
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "cancelled": summary.cancelled,
            "executed_amount": summary.executed_amount,
        },
    )
    return summary


def run_twap(
    total_amount: int,
    slice_count: int,
    interval_seconds: float,
    maker_asset: str,
    taker_asset: str,
    signing_backend: SigningBackend,
    domain: lop_v4.TypedDataDomain,
    fill: FillFunction,
    cancellation_token: CancellationToken | None = None,
    *,
    quote: QuoteProvider,
    maker: str | None = None,
    receiver: str | None = None,
    expiry_duration_seconds: int | None = None,
    fill_timeout_seconds: float | None = None,
    execution_log: ExecutionLogSink | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], float] = time.time,
) -> ExecutionSummary:
    """Plan, sign and execute a TWAP strategy.

    Only InvalidParameters escapes (before any slice runs). Every per-slice
    problem ends up as a failed record in the returned summary; callers that
    need all-or-nothing semantics check ``summary.failed == 0``.
    """
    validate_run_inputs(total_amount, slice_count, interval_seconds)

    if maker is None:
        try:
            maker = signing_backend.address
        except SigningError as exc:
            # Without a usable key there is no maker to build orders for.
            raise InvalidParameters(f"cannot determine maker address: {exc}") from exc

    builder = OrderBuilder(maker=maker, receiver=receiver, clock=clock)
    signer = OrderSigner(signing_backend, domain)

    plan = plan_twap(
        total_amount=total_amount,
        slice_count=slice_count,
        interval_seconds=interval_seconds,
        maker_asset=maker_asset,
        taker_asset=taker_asset,
        builder=builder,
        signer=signer,
        quote=quote,
        expiry_duration_seconds=expiry_duration_seconds,
        event_bus=event_bus,
        clock=clock,
    )

    return execute_plan(
        plan,
        fill=fill,
        cancellation=cancellation_token,
        fill_timeout_seconds=fill_timeout_seconds,
        execution_log=execution_log,
        event_bus=event_bus,
        clock=clock,
    )
