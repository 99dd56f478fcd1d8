"""Maker token allowance for the limit order router.

Orders only fill if the router may pull the maker asset from the maker, so a
run first checks the ERC-20 allowance and, when asked to, raises it with an
``approve`` transaction signed by the maker key.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from lop_twap.core.domain.errors import AllowanceError
from lop_twap.core.protocol import lop_v4

LOGGER = logging.getLogger(__name__)

ERC20_ALLOWANCE_ABI: list[dict[str, Any]] = [
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

_RPC_ERRORS = (Web3Exception, ValueError, requests.RequestException)


class TokenAllowance:
    """Reads and raises the router allowance of one maker for one token."""

    def __init__(
        self,
        w3: Web3,
        owner_private_key: str,
        token: str,
        *,
        spender: str = lop_v4.ROUTER_V6_ADDRESS,
        receipt_timeout_seconds: float = 120.0,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._w3 = w3
        self._owner = Account.from_key(owner_private_key)
        self._token = w3.eth.contract(address=lop_v4.to_address(token), abi=ERC20_ALLOWANCE_ABI)
        self._spender = lop_v4.to_address(spender)
        self._receipt_timeout_seconds = receipt_timeout_seconds

    @property
    def owner(self) -> str:
        return self._owner.address

    def current(self) -> int:
        try:
            return int(self._token.functions.allowance(self._owner.address, self._spender).call())
        except _RPC_ERRORS as exc:
            raise AllowanceError(f"could not read allowance: {exc}") from exc

    def approve(self, amount: int) -> str:
        """Send ``approve(spender, amount)`` and wait for it. Returns the tx hash."""
        approve_fn = self._token.functions.approve(self._spender, amount)
        try:
            tx = approve_fn.build_transaction(
                {
                    "from": self._owner.address,
                    "nonce": self._w3.eth.get_transaction_count(self._owner.address),
                    "chainId": self._w3.eth.chain_id,
                }
            )
            signed_tx = self._owner.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout_seconds
            )
        except _RPC_ERRORS as exc:
            raise AllowanceError(f"approve transaction failed: {exc}") from exc

        tx_ref = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise AllowanceError(f"approve transaction {tx_ref} reverted")

        LOGGER.info("Router allowance approved", extra={"tx_hash": tx_ref, "amount": amount})
        return tx_ref

    def ensure(self, amount: int, *, approve: bool = False) -> int:
        """Make sure the router may pull ``amount``. Returns the allowance in effect.

        Raises AllowanceError when the allowance is short and ``approve`` is
        False, or when the approval itself fails.
        """
        current = self.current()
        extra = {"owner": self._owner.address, "spender": self._spender, "allowance": current, "required": amount}
        if current >= amount:
            LOGGER.info("Router allowance sufficient", extra=extra)
            return current

        if not approve:
            raise AllowanceError(
                f"router allowance {current} is below the required {amount}; "
                "approve the maker asset or set allowance to 'approve'"
            )

        LOGGER.warning("Router allowance short; approving", extra=extra)
        self.approve(amount)
        return amount
