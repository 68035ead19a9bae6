"""Origin attribution: who actually paid behind a cross-chain proxy account."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol

from .schemas import ORIGIN_CHAIN_NATIVE, OriginInfo


class OriginResolver(Protocol):
    """Maps an on-chain payer address to its true origin.

    Returns ``None`` for accounts native to the registry's chain.
    """

    def resolve_origin(self, address: str) -> Optional[OriginInfo]:
        ...


class NativeOriginResolver:
    """Treats every payer as native to the registry chain."""

    def resolve_origin(self, address: str) -> Optional[OriginInfo]:
        return None


class StaticOriginResolver:
    """Resolver backed by a fixed ``proxy address -> OriginInfo`` mapping."""

    def __init__(self, origins: Mapping[str, OriginInfo] | None = None) -> None:
        self._origins = {k.lower(): v for k, v in (origins or {}).items()}

    def register(self, proxy: str, origin: OriginInfo) -> None:
        self._origins[proxy.lower()] = origin

    def resolve_origin(self, address: str) -> Optional[OriginInfo]:
        return self._origins.get(address.lower())


def attribute_origin(payer: str, origin: Optional[OriginInfo]) -> tuple[str, str, bool]:
    """Return ``(origin_chain, origin_address, is_origin_remote)`` for a record."""
    if origin is None:
        return ORIGIN_CHAIN_NATIVE, payer, False
    return origin.chain, origin.address, True
