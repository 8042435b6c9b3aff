"""Leaf encoding for allowlist recipients.

Leaves match what a claiming contract recomputes from ``msg.sender``:

* equal distribution: ``keccak256(abi.encodePacked(account))``
* custom distribution: ``keccak256(abi.encodePacked(account, uint256 amount))``
"""

from __future__ import annotations

import re
from typing import Optional

from eth_hash.auto import keccak
from eth_utils import is_checksum_address, is_checksum_formatted_address, is_hex_address

from .errors import InvalidAddress, InvalidAmount


TOKEN_DECIMALS = 18
UINT256_MAX = 2**256 - 1

_AMOUNT_RE = re.compile(r"^([0-9]+\.?[0-9]*|\.[0-9]+)$")


def is_valid_address(value: object) -> bool:
    """Hex account id whose mixed-case form, if any, carries a valid EIP-55 checksum."""
    if not isinstance(value, str) or not is_hex_address(value):
        return False
    if is_checksum_formatted_address(value):
        return is_checksum_address(value)
    return True


def normalize_address(address: object) -> str:
    """Return the canonical ``0x``-prefixed lowercase form of ``address``."""
    if not isinstance(address, str):
        raise InvalidAddress(address, "expected a string")
    candidate = address.strip()
    if not candidate:
        raise InvalidAddress(address, "empty")
    if not is_hex_address(candidate):
        raise InvalidAddress(address)
    if is_checksum_formatted_address(candidate) and not is_checksum_address(candidate):
        raise InvalidAddress(address, "bad EIP-55 checksum")
    candidate = candidate.lower()
    if not candidate.startswith("0x"):
        candidate = "0x" + candidate
    return candidate


def parse_amount(amount: object, decimals: int = TOKEN_DECIMALS) -> int:
    """Scale a decimal token amount into base units (``parseUnits``)."""
    if isinstance(amount, int) and not isinstance(amount, bool):
        text = str(amount)
    elif isinstance(amount, str):
        text = amount.strip()
    else:
        raise InvalidAmount(amount, "expected a decimal string")
    if not _AMOUNT_RE.match(text):
        raise InvalidAmount(amount)
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) > decimals:
        raise InvalidAmount(amount, f"more than {decimals} fractional digits")
    value = int(whole or "0") * 10**decimals + int(fraction or "0") * 10 ** (
        decimals - len(fraction)
    )
    if value > UINT256_MAX:
        raise InvalidAmount(amount, "does not fit in uint256")
    return value


def encode_leaf(address: str, amount: Optional[int] = None) -> bytes:
    address_bytes = bytes.fromhex(address[2:])
    if amount is None:
        return keccak(address_bytes)
    if amount < 0 or amount > UINT256_MAX:
        raise InvalidAmount(amount, "does not fit in uint256")
    return keccak(address_bytes + amount.to_bytes(32, byteorder="big"))


def leaf_for(
    address: object,
    amount: Optional[str] = None,
    *,
    custom: bool = False,
) -> bytes:
    """Normalize raw recipient fields and encode them as a leaf.

    ``amount`` only takes part in the hash when ``custom`` is set, in which
    case it is required.
    """
    normalized = normalize_address(address)
    if not custom:
        return encode_leaf(normalized)
    if amount is None:
        raise InvalidAmount(amount, "custom distributions need an amount")
    return encode_leaf(normalized, parse_amount(amount))
