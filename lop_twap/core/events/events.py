"""
Domain event models.

These events represent immutable facts observed while planning and
executing a TWAP run. They are consumed by loggers and recorders.
Timestamps are unix seconds taken from the scheduler clock.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(slots=True)
class SliceTransitionEvent:
    ts: float
    slice_index: int
    prev_state: str | None
    next_state: str

    # False when the transition is not allowed by the slice state machine.
    valid: bool = True


@dataclass(slots=True)
class PlanBuiltEvent:
    ts: float

    total_amount: int
    slice_count: int
    interval_seconds: float

    executable_slices: int
    failed_slices: int


@dataclass(slots=True)
class RunFinishedEvent:
    ts: float

    succeeded: int
    failed: int
    cancelled: int
    pending: int

    executed_amount: int


def event_to_json_obj(event: Any) -> dict[str, Any]:
    """Return a JSON-compatible dict for an event, tagged with its type name."""
    payload = asdict(event) if hasattr(event, "__dataclass_fields__") else {"event": str(event)}
    return {"type": type(event).__name__, **payload}
