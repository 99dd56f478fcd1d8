"""1inch Limit Order Protocol v4 encoding.

All protocol-specific knowledge lives here: the EIP-712 domain and Order
struct, the makerTraits bit layout, the API/contract representations of an
order and the compact (r, vs) signature form used by ``fillOrder``.

The pinned schema is the 8-field v4 Order hosted by the 1inch Aggregation
Router v6 (same address on Ethereum and Polygon):

    struct Order {
        uint256 salt;
        address maker;
        address receiver;
        address makerAsset;
        address takerAsset;
        uint256 makingAmount;
        uint256 takingAmount;
        uint256 makerTraits;
    }
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from eth_account.messages import encode_typed_data
from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from lop_twap.core.domain.errors import InvalidParameters

if TYPE_CHECKING:
    from lop_twap.core.domain.types import Order

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"
ROUTER_V6_ADDRESS: str = "0x111111125421cA6dc452d289314280a0f8842A65"
POLYGON_CHAIN_ID: int = 137

DOMAIN_TYPES: list[dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

ORDER_TYPES: list[dict[str, str]] = [
    {"name": "salt", "type": "uint256"},
    {"name": "maker", "type": "address"},
    {"name": "receiver", "type": "address"},
    {"name": "makerAsset", "type": "address"},
    {"name": "takerAsset", "type": "address"},
    {"name": "makingAmount", "type": "uint256"},
    {"name": "takingAmount", "type": "uint256"},
    {"name": "makerTraits", "type": "uint256"},
]

# makerTraits flag bits (high end of the uint256)
_NO_PARTIAL_FILLS_FLAG = 255
_ALLOW_MULTIPLE_FILLS_FLAG = 254
_NEED_PREINTERACTION_FLAG = 252
_NEED_POSTINTERACTION_FLAG = 251
_NEED_EPOCH_CHECK_FLAG = 250
_HAS_EXTENSION_FLAG = 249
_USE_PERMIT2_FLAG = 248
_UNWRAP_WETH_FLAG = 247

# makerTraits packed fields (low end of the uint256)
_ALLOWED_SENDER_MASK = (1 << 80) - 1
_EXPIRATION_OFFSET = 80
_NONCE_OFFSET = 120
_SERIES_OFFSET = 160
_UINT40_MAX = (1 << 40) - 1

# takerTraits: when set, the fill amount is interpreted as a making amount
TAKER_MAKER_AMOUNT_FLAG = 1 << 255

_VS_HIGH_BIT = 1 << 255


class TypedDataDomain(BaseModel):
    """EIP-712 domain descriptor of the verifying contract."""

    name: str = Field("1inch Aggregation Router", min_length=1)
    version: str = Field("6", min_length=1)
    chain_id: int = Field(POLYGON_CHAIN_ID, gt=0)
    verifying_contract: str = Field(ROUTER_V6_ADDRESS, min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def polygon_router_v6(cls) -> TypedDataDomain:
        return cls()

    def to_eip712(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": to_address(self.verifying_contract),
        }


def to_address(value: str) -> str:
    """Return the checksummed form of an address, or raise InvalidParameters."""
    try:
        return Web3.to_checksum_address(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(f"not a valid address: {value!r}") from exc


def build_maker_traits(
    *,
    expiration: int,
    nonce: int = 0,
    series: int = 0,
    allowed_sender: str = ZERO_ADDRESS,
    allow_multiple_fills: bool = True,
    no_partial_fills: bool = False,
    need_epoch_check: bool = False,
    use_permit2: bool = False,
    unwrap_weth: bool = False,
    has_extension: bool = False,
    has_pre_interaction: bool = False,
    has_post_interaction: bool = False,
) -> int:
    """Pack order options into the v4 makerTraits integer.

    Layout: allowed sender (low 80 bits of the address), expiration at bit 80,
    nonce at bit 120, series at bit 160, each 40 bits wide; flags at the top.
    """
    # pylint: disable=too-many-arguments
    for name, value in (("expiration", expiration), ("nonce", nonce), ("series", series)):
        if value < 0 or value > _UINT40_MAX:
            raise InvalidParameters(f"{name} must fit in 40 bits, got {value}")

    traits = (
        series << _SERIES_OFFSET
        | nonce << _NONCE_OFFSET
        | expiration << _EXPIRATION_OFFSET
        | int(to_address(allowed_sender), 16) & _ALLOWED_SENDER_MASK
    )

    flags = (
        (no_partial_fills, _NO_PARTIAL_FILLS_FLAG),
        (allow_multiple_fills, _ALLOW_MULTIPLE_FILLS_FLAG),
        (has_pre_interaction, _NEED_PREINTERACTION_FLAG),
        (has_post_interaction, _NEED_POSTINTERACTION_FLAG),
        (need_epoch_check, _NEED_EPOCH_CHECK_FLAG),
        (has_extension, _HAS_EXTENSION_FLAG),
        (use_permit2, _USE_PERMIT2_FLAG),
        (unwrap_weth, _UNWRAP_WETH_FLAG),
    )
    for enabled, bit in flags:
        if enabled:
            traits |= 1 << bit

    return traits


def decode_expiration(maker_traits: int) -> int:
    """Return the expiration timestamp packed into makerTraits (0 = none)."""
    return (maker_traits >> _EXPIRATION_OFFSET) & _UINT40_MAX


def order_message(order: Order) -> dict[str, Any]:
    """Return the EIP-712 message for an order, in canonical field order."""
    return {
        "salt": order.salt,
        "maker": to_address(order.maker),
        "receiver": to_address(order.receiver),
        "makerAsset": to_address(order.maker_asset),
        "takerAsset": to_address(order.taker_asset),
        "makingAmount": order.making_amount,
        "takingAmount": order.taking_amount,
        "makerTraits": order.maker_traits,
    }


def order_tuple(order: Order) -> tuple[Any, ...]:
    """Return the order as the positional tuple expected by the contract ABI."""
    message = order_message(order)
    return tuple(message[field["name"]] for field in ORDER_TYPES)


def api_order_data(order: Order) -> dict[str, str]:
    """Return the order as the orderbook API expects it: every value a string."""
    message = order_message(order)
    data = {key: str(value) for key, value in message.items()}
    data["extension"] = "0x"
    return data


def typed_data_digest(domain: TypedDataDomain, order: Order) -> bytes:
    """Return the EIP-712 digest of an order (what ``hashOrder`` returns on-chain)."""
    signable = encode_typed_data(
        domain_data=domain.to_eip712(),
        message_types={"Order": ORDER_TYPES},
        message_data=order_message(order),
    )
    return bytes(Web3.keccak(b"\x19" + signable.version + signable.header + signable.body))


def compact_signature(signature: str) -> tuple[bytes, bytes]:
    """Split a 65-byte signature into the EIP-2098 (r, vs) pair used by ``fillOrder``."""
    raw = bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
    if len(raw) != 65:
        raise InvalidParameters(f"expected a 65-byte signature, got {len(raw)} bytes")

    r = raw[:32]
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    if v < 27:
        v += 27
    if v not in (27, 28):
        raise InvalidParameters(f"invalid signature recovery id: {raw[64]}")

    vs = s | _VS_HIGH_BIT if v == 28 else s
    return r, vs.to_bytes(32, "big")
