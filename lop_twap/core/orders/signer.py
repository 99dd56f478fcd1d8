"""Typed-data signing of slice orders."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from eth_account import Account
from eth_account.messages import encode_typed_data

from lop_twap.core.domain.errors import SigningError
from lop_twap.core.domain.types import Order, SignedOrder
from lop_twap.core.protocol import lop_v4

if TYPE_CHECKING:
    from lop_twap.core.ports.signing_backend import SigningBackend

LOGGER = logging.getLogger(__name__)


class OrderSigner:
    """Produces SignedOrders for one maker and one verifying contract.

    The order is canonicalised by the protocol adapter, hashed under the
    domain and handed to the signing backend. The EIP-712 digest is kept as
    the order hash for tracking and deduplication.
    """

    def __init__(self, backend: SigningBackend, domain: lop_v4.TypedDataDomain) -> None:
        self._backend = backend
        self._domain = domain

    @property
    def domain(self) -> lop_v4.TypedDataDomain:
        return self._domain

    def sign(self, order: Order) -> SignedOrder:
        """Sign an order. Raises SigningError on any backend failure."""
        message = lop_v4.order_message(order)
        order_hash = "0x" + lop_v4.typed_data_digest(self._domain, order).hex()

        try:
            signature = self._backend.sign_typed_data(
                self._domain.to_eip712(),
                {"Order": lop_v4.ORDER_TYPES},
                message,
            )
        except SigningError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise SigningError(f"signing backend failed: {exc}") from exc

        try:
            return SignedOrder(order=order, signature=signature, order_hash=order_hash)
        except ValueError as exc:
            raise SigningError(f"signing backend returned a malformed signature: {signature!r}") from exc

    def recover(self, signed_order: SignedOrder) -> str:
        """Return the address that produced the signature of a signed order."""
        signable = encode_typed_data(
            domain_data=self._domain.to_eip712(),
            message_types={"Order": lop_v4.ORDER_TYPES},
            message_data=lop_v4.order_message(signed_order.order),
        )
        return Account.recover_message(signable, signature=signed_order.signature)

    def verify(self, signed_order: SignedOrder, signer_address: str) -> bool:
        """Return True if the order hash matches and the signature recovers to signer_address."""
        expected_hash = "0x" + lop_v4.typed_data_digest(self._domain, signed_order.order).hex()
        if expected_hash.lower() != signed_order.order_hash.lower():
            return False
        try:
            recovered = self.recover(signed_order)
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.warning("Signature recovery failed", extra={"order_hash": signed_order.order_hash})
            return False
        return recovered == lop_v4.to_address(signer_address)
