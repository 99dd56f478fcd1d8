from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from lop_twap.core.domain.types import ExecutionRecord, ExecutionSummary, TwapPlan


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PlanSummary:
    total_amount: int
    slice_count: int
    interval_seconds: float
    duration_seconds: float
    expiration: int | None
    executable_slices: int
    warnings: List[str]


# ---------------------------------------------------------------------------
# Summary builder
# ---------------------------------------------------------------------------

def summarize_plan(plan: TwapPlan) -> PlanSummary:
    warnings: list[str] = []

    executable = [planned for planned in plan.slices if planned.is_executable]
    for planned in plan.slices:
        if planned.error is not None:
            warnings.append(f"slice {planned.index} will fail: {planned.error}")

    if not executable:
        warnings.append("No slice could be prepared (0 orders will be submitted)")

    if plan.interval_seconds == 0 and plan.slice_count > 1:
        warnings.append("interval_seconds is 0: all slices run back to back")

    expiration = executable[0].signed_order.order.expiration if executable else None

    return PlanSummary(
        total_amount=plan.total_amount,
        slice_count=plan.slice_count,
        interval_seconds=plan.interval_seconds,
        duration_seconds=plan.offset_seconds(plan.slice_count - 1),
        expiration=expiration,
        executable_slices=len(executable),
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Pretty printers
# ---------------------------------------------------------------------------

def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def print_plan_summary(plan: TwapPlan) -> None:
    summary = summarize_plan(plan)

    print(f"Total amount: {summary.total_amount}")
    print(f"Slices: {summary.slice_count} ({summary.executable_slices} signed)")
    print(f"Interval: {summary.interval_seconds:g}s (last slice at +{summary.duration_seconds:g}s)")
    if summary.expiration is not None:
        print(f"Orders expire at: {_fmt_ts(summary.expiration)}")
    print()

    if summary.warnings:
        print("Warnings:")
        for w in summary.warnings:
            print(f"  - {w}")
        print()

    print("Slices:")
    for planned in plan.slices:
        if planned.signed_order is None:
            print(f"  - #{planned.index}: {planned.making_amount} | not signed")
            continue
        order = planned.signed_order.order
        print(
            f"  - #{planned.index}: "
            f"{order.making_amount} -> {order.taking_amount} | "
            f"+{plan.offset_seconds(planned.index):g}s | "
            f"{planned.signed_order.order_hash}"
        )


def print_execution_summary(summary: ExecutionSummary, records: tuple[ExecutionRecord, ...] = ()) -> None:
    print()
    print(f"Succeeded: {summary.succeeded}/{summary.total_slices}")
    print(f"Failed: {summary.failed}")
    print(f"Cancelled: {summary.cancelled}")
    if summary.pending:
        print(f"Pending: {summary.pending}")
    print(f"Executed amount: {summary.executed_amount}")

    failures = [entry for entry in records if entry.status == "failed"]
    if failures:
        print()
        print("Failures:")
        for entry in failures:
            print(f"  - #{entry.slice_index}: {entry.error}")
