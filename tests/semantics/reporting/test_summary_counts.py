"""
Semantic test: the summary reflects the latest status of every slice.

Invariant:
succeeded + failed + cancelled + pending == total_slices, slices without a
record count as pending, and executed_amount sums the making amounts of
succeeded slices only.
"""

from __future__ import annotations

from lop_twap.core.execution.reporter import ExecutionReporter
from lop_twap.core.execution.runner import execute_plan


def test_summary_counts_and_executed_amount() -> None:
    reporter = ExecutionReporter(slice_count=5)
    reporter.record(0, "pending", making_amount=10)
    reporter.record(0, "succeeded", reference="0x1")
    reporter.record(1, "pending", making_amount=10)
    reporter.record(1, "failed", error="reverted")
    reporter.record(2, "pending", making_amount=10)
    reporter.record(3, "cancelled", making_amount=15)

    summary = reporter.summary()

    assert summary.total_slices == 5
    assert (summary.succeeded, summary.failed, summary.cancelled, summary.pending) == (1, 1, 1, 2)
    assert summary.succeeded + summary.failed + summary.cancelled + summary.pending == summary.total_slices
    assert summary.executed_amount == 10
    assert summary.attempted == 2
    assert not summary.completed


def test_succeeded_without_amount_adds_nothing() -> None:
    reporter = ExecutionReporter()
    reporter.record(0, "succeeded")

    summary = reporter.summary()

    assert summary.total_slices == 1
    assert summary.succeeded == 1
    assert summary.executed_amount == 0


def test_json_view_uses_camel_case_keys(make_plan, recording_fill) -> None:
    reporter = ExecutionReporter(slice_count=1)
    execute_plan(make_plan(total_amount=10, slice_count=1), fill=recording_fill, reporter=reporter)

    last = reporter.to_json_obj()[-1]

    assert last["sliceIndex"] == 0
    assert last["status"] == "succeeded"
    assert last["reference"] == "0xfill0"
    assert last["error"] is None
    assert last["makingAmount"] == 10
    assert isinstance(last["timestamp"], str)
