"""1inch HTTP API collaborators.

- ``OneInchQuoteClient``: Swap API quote, used as the QuoteProvider.
- ``OrderbookSubmitter``: posts signed orders to the v4 orderbook, used as the
  fill function when a separate taker is expected to fill them.

Both require an API key from the 1inch developer portal (Bearer auth).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

from lop_twap.core.domain.errors import FillError, InvalidParameters, QuoteError
from lop_twap.core.domain.types import FillResult
from lop_twap.core.protocol import lop_v4

if TYPE_CHECKING:
    from lop_twap.core.domain.types import SignedOrder

LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE_URL: str = "https://api.1inch.dev"
_BPS_DENOMINATOR = 10_000


def _build_session(api_key: str) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
    )
    return session


class OneInchQuoteClient:
    """Quote provider backed by ``GET /swap/v6.0/{chain}/quote``.

    ``haircut_bps`` lowers every quoted amount (200 = ask 2% less than the
    quote) so that limit orders stay fillable while the market moves.
    """

    def __init__(
        self,
        *,
        api_key: str,
        chain_id: int = lop_v4.POLYGON_CHAIN_ID,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = 10.0,
        haircut_bps: int = 0,
        session: requests.Session | None = None,
    ) -> None:
        # pylint: disable=too-many-arguments
        if not 0 <= haircut_bps < _BPS_DENOMINATOR:
            raise InvalidParameters(f"haircut_bps must be in [0, {_BPS_DENOMINATOR}), got {haircut_bps}")
        self._url = f"{base_url.rstrip('/')}/swap/v6.0/{chain_id}/quote"
        self._timeout_seconds = timeout_seconds
        self._haircut_bps = haircut_bps
        self._session = session if session is not None else _build_session(api_key)

    def quote(self, maker_asset: str, taker_asset: str, amount: int) -> int:
        params = {"src": maker_asset, "dst": taker_asset, "amount": str(amount)}
        try:
            response = self._session.get(self._url, params=params, timeout=self._timeout_seconds)
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except requests.RequestException as exc:
            raise QuoteError(f"quote request failed: {exc}") from exc
        except ValueError as exc:
            raise QuoteError("quote response is not valid JSON") from exc

        raw_amount = payload.get("dstAmount", payload.get("toAmount"))
        if raw_amount is None:
            raise QuoteError(f"quote response has no destination amount: {sorted(payload)}")

        try:
            quoted = int(raw_amount)
        except (TypeError, ValueError) as exc:
            raise QuoteError(f"quote amount is not an integer: {raw_amount!r}") from exc

        taking = quoted * (_BPS_DENOMINATOR - self._haircut_bps) // _BPS_DENOMINATOR
        if taking <= 0:
            raise QuoteError(f"quote for {amount} {maker_asset} -> {taker_asset} is empty")

        LOGGER.debug(
            "Quoted %d -> %d",
            amount,
            taking,
            extra={"src": maker_asset, "dst": taker_asset, "quoted": quoted, "haircut_bps": self._haircut_bps},
        )
        return taking


class OrderbookSubmitter:
    """Fill function that publishes signed orders to ``POST /orderbook/v4.0/{chain}``.

    A 2xx response means the orderbook accepted the order; the reference is
    the order hash. Any other status is a failed slice carrying the response
    body. Transport errors raise FillError.
    """

    def __init__(
        self,
        *,
        api_key: str,
        chain_id: int = lop_v4.POLYGON_CHAIN_ID,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._url = f"{base_url.rstrip('/')}/orderbook/v4.0/{chain_id}"
        self._timeout_seconds = timeout_seconds
        self._session = session if session is not None else _build_session(api_key)

    @staticmethod
    def payload(signed_order: SignedOrder) -> dict[str, Any]:
        return {
            "orderHash": signed_order.order_hash,
            "signature": signed_order.signature,
            "data": lop_v4.api_order_data(signed_order.order),
        }

    def __call__(self, signed_order: SignedOrder) -> FillResult:
        try:
            response = self._session.post(
                self._url,
                json=self.payload(signed_order),
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise FillError(f"orderbook submission failed: {exc}") from exc

        if not response.ok:
            LOGGER.warning(
                "Orderbook rejected order",
                extra={"order_hash": signed_order.order_hash, "status_code": response.status_code},
            )
            return FillResult(
                success=False,
                reference=signed_order.order_hash,
                error=f"HTTP {response.status_code}: {response.text[:500]}",
            )

        return FillResult(success=True, reference=signed_order.order_hash)
