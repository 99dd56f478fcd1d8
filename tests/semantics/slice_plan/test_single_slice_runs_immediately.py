"""
Semantic test: a one-slice plan executes without waiting.

Invariant:
Slice 0 is eligible at the plan start, whatever the interval.
"""

from __future__ import annotations

import time

from lop_twap.core.execution.runner import execute_plan


def test_single_slice_is_not_delayed(make_plan, recording_fill) -> None:
    plan = make_plan(total_amount=500, slice_count=1, interval_seconds=30.0)

    started = time.monotonic()
    summary = execute_plan(plan, fill=recording_fill)
    elapsed = time.monotonic() - started

    assert elapsed < 5.0
    assert len(recording_fill.calls) == 1
    assert summary.succeeded == 1
    assert summary.executed_amount == 500
    assert summary.completed
