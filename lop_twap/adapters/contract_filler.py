"""On-chain taker fill through the router's ``fillOrder``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from lop_twap.core.domain.errors import FillError
from lop_twap.core.domain.types import FillResult
from lop_twap.core.protocol import lop_v4

if TYPE_CHECKING:
    from lop_twap.core.domain.types import SignedOrder

LOGGER = logging.getLogger(__name__)

_ORDER_COMPONENTS: list[dict[str, str]] = [
    {"name": field["name"], "type": field["type"]} for field in lop_v4.ORDER_TYPES
]

FILL_ORDER_ABI: list[dict[str, Any]] = [
    {
        "name": "fillOrder",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "order", "type": "tuple", "components": _ORDER_COMPONENTS},
            {"name": "r", "type": "bytes32"},
            {"name": "vs", "type": "bytes32"},
            {"name": "amount", "type": "uint256"},
            {"name": "takerTraits", "type": "uint256"},
        ],
        "outputs": [
            {"name": "makingAmount", "type": "uint256"},
            {"name": "takingAmount", "type": "uint256"},
            {"name": "orderHash", "type": "bytes32"},
        ],
    }
]


class ContractFiller:
    """Fill function that fills each signed order from a taker wallet.

    The whole slice is filled: the amount is the order's making amount and
    the taker traits carry the maker-amount flag. The reference is the
    transaction hash; a reverted transaction is a failed slice.
    """

    def __init__(
        self,
        w3: Web3,
        taker_private_key: str,
        *,
        contract_address: str = lop_v4.ROUTER_V6_ADDRESS,
        receipt_timeout_seconds: float = 120.0,
        gas_buffer: int = 50_000,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._w3 = w3
        self._taker = Account.from_key(taker_private_key)
        self._contract = w3.eth.contract(address=lop_v4.to_address(contract_address), abi=FILL_ORDER_ABI)
        self._receipt_timeout_seconds = receipt_timeout_seconds
        self._gas_buffer = gas_buffer

    @property
    def taker(self) -> str:
        return self._taker.address

    def __call__(self, signed_order: SignedOrder) -> FillResult:
        order = signed_order.order
        r, vs = lop_v4.compact_signature(signed_order.signature)
        fill_fn = self._contract.functions.fillOrder(
            lop_v4.order_tuple(order),
            r,
            vs,
            order.making_amount,
            lop_v4.TAKER_MAKER_AMOUNT_FLAG,
        )

        try:
            gas_estimate = fill_fn.estimate_gas({"from": self._taker.address})
            tx = fill_fn.build_transaction(
                {
                    "from": self._taker.address,
                    "nonce": self._w3.eth.get_transaction_count(self._taker.address),
                    "gas": gas_estimate + self._gas_buffer,
                    "chainId": self._w3.eth.chain_id,
                }
            )
            signed_tx = self._taker.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout_seconds
            )
        except (Web3Exception, ValueError, requests.RequestException) as exc:
            raise FillError(f"fillOrder transaction failed: {exc}") from exc

        tx_ref = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            LOGGER.warning("fillOrder reverted", extra={"tx_hash": tx_ref, "order_hash": signed_order.order_hash})
            return FillResult(success=False, reference=tx_ref, error="fillOrder transaction reverted")

        LOGGER.info("Slice filled on-chain", extra={"tx_hash": tx_ref, "order_hash": signed_order.order_hash})
        return FillResult(success=True, reference=tx_ref)
