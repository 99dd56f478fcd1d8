"""Slice order construction.

Splits a total amount into equal integer slices (the last slice absorbs the
integer-division remainder) and turns each slice into an unsigned Order.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import TYPE_CHECKING, Callable

from lop_twap.core.domain.errors import InvalidParameters, QuoteError
from lop_twap.core.domain.types import UINT256_MAX, Order
from lop_twap.core.protocol import lop_v4

if TYPE_CHECKING:
    from lop_twap.core.ports.quote_provider import QuoteProvider

LOGGER = logging.getLogger(__name__)


def random_salt() -> int:
    """Return a cryptographically random 256-bit salt."""
    return secrets.randbits(256)


def _require_int(name: str, value: object) -> int:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameters(f"{name} must be an integer, got {type(value).__name__}")
    return value


def validate_plan_inputs(total_amount: int, slice_count: int) -> None:
    """Raise InvalidParameters unless the amount can be split into slice_count slices."""
    total_amount = _require_int("total_amount", total_amount)
    slice_count = _require_int("slice_count", slice_count)

    if total_amount <= 0:
        raise InvalidParameters(f"total_amount must be > 0, got {total_amount}")
    if slice_count <= 0:
        raise InvalidParameters(f"slice_count must be > 0, got {slice_count}")
    if total_amount > UINT256_MAX:
        raise InvalidParameters(f"total_amount {total_amount} does not fit in a uint256")
    if total_amount < slice_count:
        raise InvalidParameters(
            f"total_amount {total_amount} is too small for {slice_count} non-empty slices"
        )


def split_amount(total_amount: int, slice_count: int) -> list[int]:
    """Split total_amount into slice_count integer slices that sum exactly to it.

    Example: split_amount(100, 3) == [33, 33, 34].
    """
    validate_plan_inputs(total_amount, slice_count)

    slice_amount = total_amount // slice_count
    last = total_amount - slice_amount * (slice_count - 1)
    return [slice_amount] * (slice_count - 1) + [last]


class OrderBuilder:
    """Builds unsigned limit orders for the slices of a TWAP plan.

    The builder is bound to a maker (and optional receiver; defaults to the
    maker). Taking amounts always come from the supplied quote provider.
    """

    def __init__(
        self,
        *,
        maker: str,
        receiver: str | None = None,
        nonce: int = 0,
        series: int = 0,
        clock: Callable[[], float] = time.time,
        salt_factory: Callable[[], int] = random_salt,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._maker = lop_v4.to_address(maker)
        self._receiver = lop_v4.to_address(receiver) if receiver else self._maker
        self._nonce = nonce
        self._series = series
        self._clock = clock
        self._salt_factory = salt_factory

    @property
    def maker(self) -> str:
        return self._maker

    def expiration_for(self, expiry_duration_seconds: int) -> int:
        """Return ``now + expiry_duration_seconds`` as an integer timestamp."""
        expiry_duration_seconds = _require_int("expiry_duration_seconds", expiry_duration_seconds)
        if expiry_duration_seconds <= 0:
            raise InvalidParameters(
                f"expiry_duration_seconds must be > 0, got {expiry_duration_seconds}"
            )
        return int(self._clock()) + expiry_duration_seconds

    def build_order(
        self,
        *,
        making_amount: int,
        maker_asset: str,
        taker_asset: str,
        expiration: int,
        quote: QuoteProvider,
    ) -> Order:
        """Build one slice order. Raises QuoteError if the quote is unusable."""
        if expiration <= self._clock():
            raise InvalidParameters(f"expiration {expiration} is not in the future")

        try:
            taking_amount = quote.quote(maker_asset, taker_asset, making_amount)
        except QuoteError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise QuoteError(f"quote failed: {exc}") from exc

        if isinstance(taking_amount, bool) or not isinstance(taking_amount, int) or taking_amount <= 0:
            raise QuoteError(f"quote returned an unusable taking amount: {taking_amount!r}")
        if taking_amount > UINT256_MAX:
            raise QuoteError(f"quoted taking amount {taking_amount} does not fit in a uint256")

        maker_traits = lop_v4.build_maker_traits(
            expiration=expiration,
            nonce=self._nonce,
            series=self._series,
        )

        return Order(
            salt=self._salt_factory(),
            maker=self._maker,
            receiver=self._receiver,
            maker_asset=maker_asset,
            taker_asset=taker_asset,
            making_amount=making_amount,
            taking_amount=taking_amount,
            expiration=expiration,
            maker_traits=maker_traits,
        )

    def build(
        self,
        total_amount: int,
        slice_count: int,
        maker_asset: str,
        taker_asset: str,
        expiry_duration_seconds: int,
        quote: QuoteProvider,
    ) -> list[Order]:
        """Build one order per slice, in slice order.

        The result is never empty and its making amounts sum to total_amount.
        Any quote failure aborts the whole build; planners that need per-slice
        isolation call build_order directly.
        """
        # pylint: disable=too-many-arguments
        amounts = split_amount(total_amount, slice_count)
        lop_v4.to_address(maker_asset)
        lop_v4.to_address(taker_asset)
        expiration = self.expiration_for(expiry_duration_seconds)

        orders = [
            self.build_order(
                making_amount=amount,
                maker_asset=maker_asset,
                taker_asset=taker_asset,
                expiration=expiration,
                quote=quote,
            )
            for amount in amounts
        ]

        LOGGER.debug(
            "Built slice orders",
            extra={"slice_count": slice_count, "total_amount": total_amount, "expiration": expiration},
        )
        return orders
