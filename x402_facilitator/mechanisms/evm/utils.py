"""EVM utility functions for address, nonce and validity-window handling."""

import os
import time

from eth_utils import is_hex_address, to_checksum_address

from .constants import DEFAULT_VALIDITY_BUFFER, DEFAULT_VALIDITY_PERIOD


def create_nonce() -> str:
    """Generate random 32-byte nonce as hex string (0x...).

    Returns:
        Hex string with 0x prefix.
    """
    return "0x" + os.urandom(32).hex()


def normalize_address(address: str) -> str:
    """Normalize Ethereum address to checksummed format.

    Raises:
        ValueError: If address is invalid.
    """
    if not is_hex_address(address):
        raise ValueError(f"Invalid address: {address}")
    return to_checksum_address(address)


def addresses_equal(a: str | None, b: str | None) -> bool:
    """Case-insensitive address comparison. ``None`` never matches."""
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def create_validity_window(
    duration: int = DEFAULT_VALIDITY_PERIOD,
    buffer: int = DEFAULT_VALIDITY_BUFFER,
    now: int | None = None,
) -> tuple[int, int]:
    """Create valid_after/valid_before timestamps.

    Args:
        duration: Seconds the authorization stays valid.
        buffer: Seconds before now for valid_after (clock skew).
        now: Override for the current unix time.

    Returns:
        (valid_after, valid_before) as Unix timestamps.
    """
    if now is None:
        now = int(time.time())
    return (now - buffer, now + duration)


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string to bytes (handles 0x prefix)."""
    return bytes.fromhex(hex_str.removeprefix("0x"))
