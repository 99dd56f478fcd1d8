"""Signing backend protocol.

A signing backend holds the maker's key. The core only ever hands it a
typed-data domain, schema and message; it never sees the key itself.
"""

from __future__ import annotations

from typing import Any, Protocol


class SigningBackend(Protocol):
    """Typed structured data (EIP-712) signer."""

    @property
    def address(self) -> str:
        """Return the signer's address. Raises SigningError if the key is unusable."""

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        """Return the 0x-prefixed 65-byte signature over ``message``.

        Raises SigningError if the key handle is invalid or the backend is unavailable.
        """
