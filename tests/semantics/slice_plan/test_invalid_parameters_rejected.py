"""
Semantic test: malformed plan inputs abort before any slice runs.

Invariant:
InvalidParameters is raised for non-positive amounts or slice counts (and
other unusable run inputs), and the fill function is never called.
"""

from __future__ import annotations

import pytest

from lop_twap.adapters.local_signer import LocalAccountSigner
from lop_twap.core.domain.errors import InvalidParameters
from lop_twap.core.execution.runner import run_twap
from lop_twap.core.orders.builder import split_amount
from lop_twap.core.orders.quotes import FixedRateQuote


@pytest.mark.parametrize(
    ("total_amount", "slice_count"),
    [(0, 1), (-5, 2), (10, 0), (10, -1), (3, 4), (True, 1), (10, 2.0)],
)
def test_split_amount_rejects_bad_inputs(total_amount, slice_count) -> None:
    with pytest.raises(InvalidParameters):
        split_amount(total_amount, slice_count)


@pytest.mark.parametrize(
    ("total_amount", "slice_count", "interval_seconds"),
    [(0, 3, 1.0), (100, 0, 1.0), (100, 3, -1.0)],
)
def test_run_twap_rejects_before_filling(
    total_amount, slice_count, interval_seconds, signing_backend, domain, recording_fill, assets
) -> None:
    maker_asset, taker_asset = assets

    with pytest.raises(InvalidParameters):
        run_twap(
            total_amount,
            slice_count,
            interval_seconds,
            maker_asset,
            taker_asset,
            signing_backend,
            domain,
            recording_fill,
            quote=FixedRateQuote(2),
        )

    assert recording_fill.calls == []


def test_invalid_asset_address_rejected(make_plan) -> None:
    with pytest.raises(InvalidParameters):
        make_plan(maker_asset="not-an-address")


def test_non_positive_expiry_rejected(make_plan) -> None:
    with pytest.raises(InvalidParameters):
        make_plan(expiry_duration_seconds=0)


def test_unusable_maker_key_rejected_before_run(domain, recording_fill, assets) -> None:
    maker_asset, taker_asset = assets

    with pytest.raises(InvalidParameters):
        run_twap(
            100,
            2,
            0,
            maker_asset,
            taker_asset,
            LocalAccountSigner("0xnot-a-key"),
            domain,
            recording_fill,
            quote=FixedRateQuote(1),
        )

    assert recording_fill.calls == []


def test_invalid_parameters_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        split_amount(0, 1)


def test_total_amount_above_uint256_rejected(make_plan) -> None:
    with pytest.raises(InvalidParameters):
        split_amount(1 << 256, 2)

    with pytest.raises(InvalidParameters):
        make_plan(total_amount=1 << 257, slice_count=1)
