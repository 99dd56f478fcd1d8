"""
Semantic test: slice orders are well-formed when built.

Invariant:
Every order has positive making and taking amounts, an expiration strictly
in the future (now + expiry), a unique salt, and a receiver defaulting to
the maker.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from lop_twap.core.domain.errors import InvalidParameters, QuoteError
from lop_twap.core.domain.types import Order
from lop_twap.core.orders.builder import OrderBuilder
from lop_twap.core.orders.quotes import FixedRateQuote

NOW = 1_700_000_000.0


def test_build_produces_sum_exact_future_orders(maker_account, assets) -> None:
    maker_asset, taker_asset = assets
    salts = iter(range(1, 100))
    builder = OrderBuilder(maker=maker_account.address, clock=lambda: NOW, salt_factory=lambda: next(salts))

    orders = builder.build(1_000, 3, maker_asset, taker_asset, 3_600, FixedRateQuote("1.5"))

    assert [order.making_amount for order in orders] == [333, 333, 334]
    assert [order.taking_amount for order in orders] == [499, 499, 501]
    assert {order.expiration for order in orders} == {int(NOW) + 3_600}
    assert [order.salt for order in orders] == [1, 2, 3]
    assert all(order.receiver == order.maker == maker_account.address for order in orders)


def test_random_salts_are_unique(order_builder, fixed_quote, assets) -> None:
    maker_asset, taker_asset = assets

    orders = order_builder.build(10_000, 50, maker_asset, taker_asset, 60, fixed_quote)

    assert len({order.salt for order in orders}) == 50
    assert all(0 <= order.salt < 2**256 for order in orders)


def test_any_quote_failure_aborts_build(order_builder, assets) -> None:
    maker_asset, taker_asset = assets

    with pytest.raises(QuoteError):
        order_builder.build(10, 2, maker_asset, taker_asset, 60, FixedRateQuote("0.01"))


def test_non_integer_quote_is_rejected(order_builder, assets) -> None:
    maker_asset, taker_asset = assets

    class FloatQuote:
        def quote(self, maker_asset, taker_asset, amount):
            return amount * 1.5

    with pytest.raises(QuoteError):
        order_builder.build(10, 1, maker_asset, taker_asset, 60, FloatQuote())


def test_past_expiration_rejected(order_builder, fixed_quote, assets) -> None:
    maker_asset, taker_asset = assets

    with pytest.raises(InvalidParameters):
        order_builder.build_order(
            making_amount=10,
            maker_asset=maker_asset,
            taker_asset=taker_asset,
            expiration=1,
            quote=fixed_quote,
        )


def test_order_model_rejects_non_positive_amounts(maker_account, assets) -> None:
    maker_asset, taker_asset = assets
    base = {
        "salt": 1,
        "maker": maker_account.address,
        "receiver": maker_account.address,
        "maker_asset": maker_asset,
        "taker_asset": taker_asset,
        "making_amount": 1,
        "taking_amount": 1,
        "expiration": 1,
    }

    Order(**base)
    with pytest.raises(ValidationError):
        Order(**{**base, "making_amount": 0})
    with pytest.raises(ValidationError):
        Order(**{**base, "taking_amount": -1})


def test_fixed_rate_quote_validation() -> None:
    assert FixedRateQuote("0.25").quote("a", "b", 10) == 2
    with pytest.raises(InvalidParameters):
        FixedRateQuote(0)
    with pytest.raises(InvalidParameters):
        FixedRateQuote("abc")
