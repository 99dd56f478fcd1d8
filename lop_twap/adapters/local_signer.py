"""In-process signing backend backed by an eth_account private key."""

from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from lop_twap.core.domain.errors import SigningError

LOGGER = logging.getLogger(__name__)


class LocalAccountSigner:
    """Signs typed data with a raw private key.

    The key is parsed lazily so that an invalid key surfaces as a
    SigningError at signing time, like any other backend failure.
    """

    def __init__(self, private_key: str) -> None:
        self._private_key = private_key
        self._account: LocalAccount | None = None

    def _load(self) -> LocalAccount:
        if self._account is None:
            if not self._private_key:
                raise SigningError("no private key configured")
            try:
                self._account = Account.from_key(self._private_key)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise SigningError("invalid private key") from exc
        return self._account

    @property
    def address(self) -> str:
        return self._load().address

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        account = self._load()
        try:
            signed = account.sign_typed_data(
                domain_data=domain,
                message_types=types,
                message_data=message,
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise SigningError(f"typed data signing failed: {exc}") from exc
        return "0x" + bytes(signed.signature).hex()

    def __repr__(self) -> str:
        # Never leak the key.
        loaded = self._account.address if self._account is not None else "unloaded"
        return f"LocalAccountSigner({loaded})"
