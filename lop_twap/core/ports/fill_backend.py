"""Fill backend protocol.

The fill call is the only place where a slice leaves the process: an HTTP
submission to an orderbook or an on-chain ``fillOrder`` transaction. The
scheduler treats it as a black box.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol

if TYPE_CHECKING:
    from lop_twap.core.domain.types import FillResult, SignedOrder


class FillFunction(Protocol):
    """Submission/fill boundary.

    Returns a FillResult (or a ``{success, reference, error}`` mapping).
    May raise; the scheduler records any exception as a failed slice.
    """

    def __call__(self, signed_order: SignedOrder) -> FillResult | Mapping[str, Any]:
        """Submit or fill one signed order."""
