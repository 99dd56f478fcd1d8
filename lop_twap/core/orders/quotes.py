"""Caller-supplied exchange rate as a quote provider."""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

from lop_twap.core.domain.errors import InvalidParameters, QuoteError


class FixedRateQuote:
    """Quote provider backed by a fixed exchange rate.

    ``rate`` is expressed in taker-asset smallest units per maker-asset
    smallest unit. Taking amounts are rounded down so the maker never asks
    for more than the rate allows.
    """

    def __init__(self, rate: str | int | Decimal | Fraction) -> None:
        try:
            self._rate = Fraction(str(rate)) if not isinstance(rate, Fraction) else rate
        except (ValueError, ZeroDivisionError) as exc:
            raise InvalidParameters(f"invalid exchange rate: {rate!r}") from exc
        if self._rate <= 0:
            raise InvalidParameters(f"exchange rate must be > 0, got {rate!r}")

    @property
    def rate(self) -> Fraction:
        return self._rate

    def quote(self, maker_asset: str, taker_asset: str, amount: int) -> int:
        taking = int(amount * self._rate)  # int() truncates toward zero
        if taking <= 0:
            raise QuoteError(
                f"rate {self._rate} yields no {taker_asset} for {amount} of {maker_asset}"
            )
        return taking
