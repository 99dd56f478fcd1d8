"""Quote provider protocol.

The core never fetches prices itself. A quote provider turns a making amount
into the taking amount expected for one slice.
"""

from __future__ import annotations

from typing import Protocol


class QuoteProvider(Protocol):
    """Quoting collaborator boundary (HTTP price API, fixed rate...)."""

    def quote(self, maker_asset: str, taker_asset: str, amount: int) -> int:
        """Return the taking amount for ``amount`` of ``maker_asset``.

        Implementations raise QuoteError when no usable quote is available.
        """
