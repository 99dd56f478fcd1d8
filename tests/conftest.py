"""Shared fixtures for the semantic test suite."""

# pylint: disable=missing-function-docstring,redefined-outer-name
from __future__ import annotations

import threading
import time
from typing import Any, Callable

import pytest
from eth_account import Account

from lop_twap.adapters.local_signer import LocalAccountSigner
from lop_twap.core.domain.types import FillResult, SignedOrder, TwapPlan
from lop_twap.core.orders.builder import OrderBuilder
from lop_twap.core.orders.quotes import FixedRateQuote
from lop_twap.core.orders.signer import OrderSigner
from lop_twap.core.execution.runner import plan_twap
from lop_twap.core.protocol.lop_v4 import TypedDataDomain

# Polygon USDC / WMATIC
MAKER_ASSET = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
TAKER_ASSET = "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270"


class RecordingFill:
    """Fill function that records call windows and answers from a script.

    ``outcomes`` maps a call number (0-based) to a FillResult, a mapping, or
    an exception to raise; unscripted calls succeed.
    """

    def __init__(self, outcomes: dict[int, Any] | None = None, duration: float = 0.0) -> None:
        self.outcomes = outcomes or {}
        self.duration = duration
        self.calls: list[SignedOrder] = []
        self.windows: list[tuple[float, float]] = []
        self._lock = threading.Lock()

    def __call__(self, signed_order: SignedOrder) -> Any:
        started = time.time()
        with self._lock:
            call_no = len(self.calls)
            self.calls.append(signed_order)
        if self.duration:
            time.sleep(self.duration)
        self.windows.append((started, time.time()))

        outcome = self.outcomes.get(call_no)
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is not None:
            return outcome
        return FillResult(success=True, reference=f"0xfill{call_no}")


@pytest.fixture
def maker_account() -> Any:
    return Account.create()


@pytest.fixture
def signing_backend(maker_account: Any) -> LocalAccountSigner:
    return LocalAccountSigner(maker_account.key.hex())


@pytest.fixture
def domain() -> TypedDataDomain:
    return TypedDataDomain.polygon_router_v6()


@pytest.fixture
def order_signer(signing_backend: LocalAccountSigner, domain: TypedDataDomain) -> OrderSigner:
    return OrderSigner(signing_backend, domain)


@pytest.fixture
def order_builder(maker_account: Any) -> OrderBuilder:
    return OrderBuilder(maker=maker_account.address)


@pytest.fixture
def fixed_quote() -> FixedRateQuote:
    return FixedRateQuote("2.5")


@pytest.fixture
def make_plan(
    order_builder: OrderBuilder,
    order_signer: OrderSigner,
    fixed_quote: FixedRateQuote,
) -> Callable[..., TwapPlan]:
    """Factory building a signed plan with the default maker, quote and assets."""

    def _make(
        total_amount: int = 100,
        slice_count: int = 3,
        interval_seconds: float = 0.0,
        **overrides: Any,
    ) -> TwapPlan:
        kwargs: dict[str, Any] = {
            "total_amount": total_amount,
            "slice_count": slice_count,
            "interval_seconds": interval_seconds,
            "maker_asset": MAKER_ASSET,
            "taker_asset": TAKER_ASSET,
            "builder": order_builder,
            "signer": order_signer,
            "quote": fixed_quote,
        }
        kwargs.update(overrides)
        return plan_twap(**kwargs)

    return _make


@pytest.fixture
def recording_fill() -> RecordingFill:
    return RecordingFill()


@pytest.fixture
def make_fill() -> type[RecordingFill]:
    return RecordingFill


@pytest.fixture
def assets() -> tuple[str, str]:
    return MAKER_ASSET, TAKER_ASSET
