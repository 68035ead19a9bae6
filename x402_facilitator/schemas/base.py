"""Base model configuration and shared protocol constants."""

from __future__ import annotations

from typing import Any

from eth_utils import is_hex_address
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

X402_VERSION = 1

SCHEME_EXACT = "exact"

# Reserved asset identifier for the chain's own base unit.
NATIVE_ASSET = "0x0000000000000000000000000000000000000000"
ZERO_ADDRESS = NATIVE_ASSET


class BaseX402Model(BaseModel):
    """Base for all wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def uint_string(v: Any, field_name: str) -> str:
    """Coerce to a non-negative integer encoded as a decimal string."""
    if isinstance(v, bool):
        raise ValueError(f"{field_name} must be an integer encoded as a string")
    if isinstance(v, int):
        v = str(v)
    if not isinstance(v, str):
        raise ValueError(f"{field_name} must be an integer encoded as a string")
    try:
        as_int = int(v)
    except ValueError:
        raise ValueError(f"{field_name} must be an integer encoded as a string")
    if as_int < 0:
        raise ValueError(f"{field_name} must not be negative")
    return v


def hex_address(v: Any, field_name: str) -> str:
    if not isinstance(v, str) or not is_hex_address(v):
        raise ValueError(f"{field_name} is not a valid EVM address")
    return v


def is_native_asset(asset: str) -> bool:
    return asset.lower() == NATIVE_ASSET
