"""Supported networks and chain-id resolution.

Resolution is a pure table lookup. Unknown networks raise
``UnsupportedNetworkError``: signatures are never checked against a guessed
EIP-712 domain.
"""

from __future__ import annotations

from .errors import UnsupportedNetworkError

NETWORK_TO_CHAIN_ID: dict[str, int] = {
    "push-chain": 42101,
    "ethereum": 1,
    "ethereum-sepolia": 11155111,
    "base": 8453,
    "base-sepolia": 84532,
    "arbitrum": 42161,
    "optimism": 10,
    "polygon": 137,
}

CHAIN_ID_TO_NETWORK: dict[int, str] = {v: k for k, v in NETWORK_TO_CHAIN_ID.items()}

EIP155_NAMESPACE = "eip155"


def get_chain_id(network: str) -> int:
    """Resolve a network identifier to its EVM chain id.

    Accepts the short names in ``NETWORK_TO_CHAIN_ID`` and CAIP-2 identifiers
    (``eip155:84532``) for the same chains.

    Raises:
        UnsupportedNetworkError: If the network is not in the table.
    """
    if network in NETWORK_TO_CHAIN_ID:
        return NETWORK_TO_CHAIN_ID[network]

    if network.startswith(f"{EIP155_NAMESPACE}:"):
        try:
            chain_id = int(network.split(":", 1)[1])
        except ValueError as e:
            raise UnsupportedNetworkError(network) from e
        if chain_id in CHAIN_ID_TO_NETWORK:
            return chain_id

    raise UnsupportedNetworkError(network)


def is_supported_network(network: str) -> bool:
    try:
        get_chain_id(network)
    except UnsupportedNetworkError:
        return False
    return True


def to_caip2(network: str) -> str:
    """Return the CAIP-2 form (``eip155:<chainId>``) of a supported network."""
    return f"{EIP155_NAMESPACE}:{get_chain_id(network)}"


def same_network(a: str, b: str) -> bool:
    """True if both identifiers resolve to the same chain."""
    return get_chain_id(a) == get_chain_id(b)
