"""Append-only execution log for a TWAP run.

Every call to ``record`` appends one ExecutionRecord; nothing is ever
rewritten. A ``pending`` record marks the moment a slice starts executing,
a terminal record (``succeeded``, ``failed``, ``cancelled``) closes it.
The current status of a slice is the status of its latest record.
"""

# pylint: disable=too-many-arguments
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from lop_twap.core.domain.errors import DuplicateRecord
from lop_twap.core.domain.types import (
    TERMINAL_EXECUTION_STATUSES,
    ExecutionRecord,
    ExecutionSummary,
)

if TYPE_CHECKING:
    from lop_twap.core.execution.log_sink import ExecutionLogSink

LOGGER = logging.getLogger(__name__)

_VALID_STATUSES: frozenset[str] = frozenset({"pending", *TERMINAL_EXECUTION_STATUSES})


class ExecutionReporter:
    """Accumulates execution records and summarises them.

    ``slice_count`` is optional; when given, slice indices are range-checked
    and slices without any record count as pending in the summary.
    """

    def __init__(
        self,
        *,
        slice_count: int | None = None,
        sink: ExecutionLogSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._slice_count = slice_count
        self._sink = sink
        self._clock = clock

        self._records: list[ExecutionRecord] = []
        self._latest: dict[int, ExecutionRecord] = {}
        self._making_amounts: dict[int, int] = {}

    # ---- Recording ----
    def record(
        self,
        slice_index: int,
        status: str,
        reference: str | None = None,
        error: str | None = None,
        *,
        making_amount: int | None = None,
        order_hash: str | None = None,
    ) -> ExecutionRecord:
        """Append a record for a slice.

        Raises DuplicateRecord if the slice already reached a terminal status.
        """
        if status not in _VALID_STATUSES:
            raise ValueError(f"unknown execution status: {status!r}")
        if slice_index < 0 or (self._slice_count is not None and slice_index >= self._slice_count):
            raise ValueError(f"slice index out of range: {slice_index}")

        previous = self._latest.get(slice_index)
        if previous is not None and previous.is_terminal():
            raise DuplicateRecord(slice_index, previous.status)

        if making_amount is None:
            making_amount = self._making_amounts.get(slice_index)
        if order_hash is None and previous is not None:
            order_hash = previous.order_hash

        entry = ExecutionRecord(
            slice_index=slice_index,
            status=status,
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
            reference=reference,
            error=error,
            making_amount=making_amount,
            order_hash=order_hash,
        )

        self._records.append(entry)
        self._latest[slice_index] = entry
        if making_amount is not None:
            self._making_amounts[slice_index] = making_amount

        LOGGER.info(
            "Slice %d %s",
            slice_index,
            status,
            extra={"slice_index": slice_index, "status": status, "reference": reference, "error": error},
        )

        if entry.is_terminal():
            self.flush()
        return entry

    # ---- Queries ----
    @property
    def records(self) -> tuple[ExecutionRecord, ...]:
        return tuple(self._records)

    def status_of(self, slice_index: int) -> str | None:
        latest = self._latest.get(slice_index)
        return None if latest is None else latest.status

    def summary(self) -> ExecutionSummary:
        counts = {"succeeded": 0, "failed": 0, "cancelled": 0, "pending": 0}
        executed_amount = 0

        for slice_index, latest in self._latest.items():
            counts[latest.status] += 1
            if latest.status == "succeeded":
                executed_amount += self._making_amounts.get(slice_index, 0)

        total = self._slice_count if self._slice_count is not None else len(self._latest)
        # Slices never seen at all are still pending.
        counts["pending"] += total - len(self._latest)

        return ExecutionSummary(
            total_slices=total,
            succeeded=counts["succeeded"],
            failed=counts["failed"],
            cancelled=counts["cancelled"],
            pending=counts["pending"],
            executed_amount=executed_amount,
        )

    # ---- Serialisation / persistence ----
    def to_json_obj(self) -> list[dict[str, Any]]:
        return [entry.to_json_obj() for entry in self._records]

    def flush(self) -> None:
        """Persist the log through the configured sink (best-effort)."""
        if self._sink is None:
            return
        try:
            self._sink.write(self.to_json_obj())
        except OSError:
            LOGGER.exception("Execution log persistence failed")
