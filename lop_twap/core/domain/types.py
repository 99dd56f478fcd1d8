"""Core shared data models.

This module defines the canonical Pydantic models for orders, signed orders,
TWAP plans and execution records, plus the plain result types returned by
the fill and reporting layers. Models are frozen: an order is immutable once
built and a plan is never mutated after creation.
"""

# pylint: disable=line-too-long,missing-class-docstring,missing-function-docstring
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

UINT256_MAX: int = (1 << 256) - 1

ExecutionStatus = Literal["pending", "succeeded", "failed", "cancelled"]

TERMINAL_EXECUTION_STATUSES: frozenset[str] = frozenset({"succeeded", "failed", "cancelled"})


# ---------------------------------------------------------------------------
# Order models
# ---------------------------------------------------------------------------


class Order(BaseModel):
    """One slice's intended trade.

    Asset and account identifiers are opaque strings at this level; the
    protocol adapter is responsible for turning them into addresses.
    """

    salt: int = Field(..., ge=0, le=UINT256_MAX)

    maker: str = Field(..., min_length=1)
    receiver: str = Field(..., min_length=1)

    maker_asset: str = Field(..., min_length=1)
    taker_asset: str = Field(..., min_length=1)

    making_amount: int = Field(..., gt=0, le=UINT256_MAX)
    taking_amount: int = Field(..., gt=0, le=UINT256_MAX)

    expiration: int = Field(..., gt=0, description="Unix timestamp (seconds) after which the order is invalid.")
    maker_traits: int = Field(default=0, ge=0, le=UINT256_MAX)

    model_config = ConfigDict(extra="forbid", frozen=True)


class SignedOrder(BaseModel):
    order: Order
    signature: str = Field(..., pattern=r"^0x[0-9a-fA-F]{130}$")
    order_hash: str = Field(..., pattern=r"^0x[0-9a-fA-F]{64}$")

    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Plan models
# ---------------------------------------------------------------------------


class PlannedSlice(BaseModel):
    """A slice of a TWAP plan.

    Either carries the signed order to submit, or the reason why quoting or
    signing failed for this slice. A slice with an error is recorded as
    failed when its turn comes; the rest of the plan is unaffected.
    """

    index: int = Field(..., ge=0)
    making_amount: int = Field(..., gt=0)

    signed_order: SignedOrder | None = None
    error: str | None = Field(default=None, min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_order_or_error(self) -> PlannedSlice:
        if (self.signed_order is None) == (self.error is None):
            raise ValueError("exactly one of signed_order or error must be set")
        if self.signed_order is not None and self.signed_order.order.making_amount != self.making_amount:
            raise ValueError("signed order making_amount does not match slice making_amount")
        return self

    @property
    def is_executable(self) -> bool:
        return self.signed_order is not None


class TwapPlan(BaseModel):
    total_amount: int = Field(..., gt=0)
    slice_count: int = Field(..., ge=1)
    interval_seconds: float = Field(..., ge=0)

    slices: tuple[PlannedSlice, ...]

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_slices(self) -> TwapPlan:
        """
        Enforce the plan invariants:
        - one slice per index 0..slice_count-1, in order
        - slice making amounts sum exactly to total_amount
        """
        if len(self.slices) != self.slice_count:
            raise ValueError(f"expected {self.slice_count} slices, got {len(self.slices)}")
        for position, planned in enumerate(self.slices):
            if planned.index != position:
                raise ValueError(f"slice at position {position} has index {planned.index}")
        allocated = sum(planned.making_amount for planned in self.slices)
        if allocated != self.total_amount:
            raise ValueError(f"slice amounts sum to {allocated}, expected {self.total_amount}")
        return self

    def offset_seconds(self, index: int) -> float:
        """Delay of slice ``index`` relative to the plan start."""
        return index * self.interval_seconds


# ---------------------------------------------------------------------------
# Execution records
# ---------------------------------------------------------------------------


class ExecutionRecord(BaseModel):
    """One append-only entry of the execution log.

    Serialised with camelCase keys (``sliceIndex``, ``makingAmount``...) to
    keep the persisted JSON layout stable.
    """

    slice_index: int = Field(..., ge=0, alias="sliceIndex")
    status: ExecutionStatus
    timestamp: datetime

    reference: str | None = None
    error: str | None = None

    making_amount: int | None = Field(default=None, gt=0, alias="makingAmount")
    order_hash: str | None = Field(default=None, alias="orderHash")

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_EXECUTION_STATUSES

    def to_json_obj(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True, slots=True)
class ExecutionSummary:
    total_slices: int

    succeeded: int
    failed: int
    cancelled: int
    pending: int

    executed_amount: int  # sum of making_amount over succeeded slices

    @property
    def completed(self) -> bool:
        """True when every slice succeeded."""
        return self.succeeded == self.total_slices

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


# ---------------------------------------------------------------------------
# Fill outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FillResult:
    """Outcome of one external fill/submission call."""

    success: bool
    reference: str | None = None
    error: str | None = None

    @classmethod
    def from_obj(cls, obj: FillResult | Mapping[str, Any]) -> FillResult:
        """Accept either a FillResult or a ``{success, reference, error}`` mapping."""
        if isinstance(obj, FillResult):
            return obj
        if isinstance(obj, Mapping):
            return cls(
                success=bool(obj.get("success", False)),
                reference=obj.get("reference"),
                error=obj.get("error"),
            )
        raise TypeError(f"unsupported fill result type: {type(obj).__name__}")
