"""
Semantic test: execution log persistence never breaks a run.

Invariant:
An OSError from the log sink is logged; the slice is still recorded and the
plan keeps executing.
"""

from __future__ import annotations

import logging

from lop_twap.core.execution.reporter import ExecutionReporter
from lop_twap.core.execution.runner import execute_plan


class BrokenSink:
    def __init__(self) -> None:
        self.writes = 0

    def write(self, records) -> None:
        self.writes += 1
        raise OSError("disk full")


def test_sink_failure_is_logged_not_raised(make_plan, recording_fill, caplog) -> None:
    sink = BrokenSink()
    reporter = ExecutionReporter(slice_count=2, sink=sink)

    with caplog.at_level(logging.ERROR, logger="lop_twap.core.execution.reporter"):
        summary = execute_plan(make_plan(total_amount=20, slice_count=2), fill=recording_fill, reporter=reporter)

    assert summary.succeeded == 2
    assert sink.writes >= 2
    assert "Execution log persistence failed" in caplog.text
