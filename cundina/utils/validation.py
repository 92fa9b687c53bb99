"""
Validation utilities.

Address and identifier checks shared by orchestrators and readers.
"""

import re

from eth_utils import is_address, to_checksum_address

from cundina.config.constants import ZERO_ADDRESS

_HEX40_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_HEX64_RE = re.compile(r"^(0x)?[a-fA-F0-9]{64}$")


def is_wallet_address(value: str | None) -> bool:
    """
    Check that value is a 0x-prefixed 20-byte hex address.

    Mixed-case input must pass the EIP-55 checksum.
    """
    if not value or not _HEX40_RE.match(value):
        return False
    return is_address(value)


def is_bytes32_hex(value: str | None) -> bool:
    """True for 64 hex characters, with or without 0x."""
    return bool(value) and bool(_HEX64_RE.match(value))


def is_zero_address(value: str | None) -> bool:
    return not value or value.lower() == ZERO_ADDRESS


def normalize_address(value: str) -> str:
    """
    Lower-case an address for comparisons and cache keys.

    Raises:
        ValueError: If value is not an address
    """
    if not _HEX40_RE.match(value or ""):
        raise ValueError(f"Invalid address: {value}")
    return value.lower()


def checksum(value: str) -> str:
    """Checksum an address for contract calls."""
    return to_checksum_address(value)


def same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()
