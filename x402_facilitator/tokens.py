"""Token registry collaborator: which assets the facilitator accepts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Protocol

from .schemas import is_native_asset

if TYPE_CHECKING:
    from web3 import Web3

IS_SUPPORTED_TOKEN_ABI = [
    {
        "inputs": [{"name": "tokenAddress", "type": "address"}],
        "name": "isSupportedToken",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    }
]


class TokenRegistry(Protocol):
    """Answers whether a token contract is accepted for payment."""

    def is_supported(self, asset: str) -> bool:
        ...


class StaticTokenRegistry:
    """Token registry backed by a fixed allow-list.

    The native sentinel is always supported.
    """

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self._tokens = {t.lower() for t in tokens}

    def add(self, asset: str) -> None:
        self._tokens.add(asset.lower())

    def is_supported(self, asset: str) -> bool:
        return is_native_asset(asset) or asset.lower() in self._tokens


class ContractTokenRegistry:
    """Token registry backed by an on-chain token manager's ``isSupportedToken``."""

    def __init__(self, w3: Web3, address: str) -> None:
        self._contract = w3.eth.contract(
            address=w3.to_checksum_address(address), abi=IS_SUPPORTED_TOKEN_ABI
        )

    def is_supported(self, asset: str) -> bool:
        if is_native_asset(asset):
            return True
        return bool(self._contract.functions.isSupportedToken(asset).call())
