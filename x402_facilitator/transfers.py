"""Proof-of-transfer handling.

A valid signature says the payer *agreed* to pay. A transfer proof says the
money *moved*. This module fetches the transaction a proof points at and
checks it against the authorization before anything is recorded.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Protocol

import requests
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from .errors import (
    TransferFailedOnSourceError,
    TransferMismatchError,
    TransferNotFoundError,
    TransientError,
    UnsupportedNetworkError,
)
from .mechanisms.evm.constants import ERC20_TRANSFER_TOPIC, TX_STATUS_SUCCESS
from .mechanisms.evm.utils import addresses_equal
from .networks import get_chain_id
from .schemas import NATIVE_ASSET, PaymentPayload, PaymentRequirements, is_native_asset

if TYPE_CHECKING:
    from .schemas import Authorization

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferProof:
    """Reference to the transaction that moved the funds."""

    tx_hash: str
    network: str
    # Produced by our own executor rather than supplied by the client.
    trusted: bool = False


@dataclass(frozen=True)
class Transfer:
    from_: str
    to: str
    value: int


@dataclass(frozen=True)
class TransferReceipt:
    tx_hash: str
    status: int
    transfers: list[Transfer] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == TX_STATUS_SUCCESS


class ReceiptFetcher(Protocol):
    """Looks up a transaction on one network.

    Raises ``TransferNotFoundError`` when the node confirms the transaction
    does not exist and ``TransientError`` when the node cannot answer.
    """

    def get_transfer(self, tx_hash: str, asset: str) -> TransferReceipt:
        ...


class TransferExecutor(Protocol):
    """Moves the funds described by a verified payload and returns the proof."""

    def execute(self, payload: PaymentPayload, requirements: PaymentRequirements) -> TransferProof:
        ...


def proof_from_payload(payload: PaymentPayload) -> Optional[TransferProof]:
    """Extract the client-supplied proof, if any, from an ``exact`` payload."""
    tx_hash = payload.payload.tx_hash
    if not tx_hash:
        return None
    return TransferProof(tx_hash=tx_hash, network=payload.payload.tx_network or payload.network)


# ============================================================================
# Web3 receipt fetcher
# ============================================================================


def _topic_to_address(topic: Any) -> str:
    raw = bytes(topic) if not isinstance(topic, str) else bytes.fromhex(topic.removeprefix("0x"))
    return to_checksum_address(raw[-20:])


def _data_to_int(data: Any) -> int:
    if isinstance(data, str):
        return int(data, 16) if data not in ("0x", "") else 0
    return int.from_bytes(bytes(data), "big")


def _topic_hex(topic: Any) -> str:
    if isinstance(topic, str):
        return topic.lower() if topic.startswith("0x") else "0x" + topic.lower()
    return "0x" + bytes(topic).hex()


class Web3ReceiptFetcher:
    """Fetches transfer receipts over JSON-RPC with web3.

    Native transfers are read from the transaction itself; ERC-20 transfers
    from the ``Transfer`` logs emitted by the asset contract.
    """

    def __init__(self, rpc_url: str | None = None, timeout: float = 10.0, w3: Web3 | None = None):
        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url or w3 is required")
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._w3 = w3

    def get_transfer(self, tx_hash: str, asset: str) -> TransferReceipt:
        try:
            receipt = self._w3.eth.get_transaction_receipt(tx_hash)
            tx = self._w3.eth.get_transaction(tx_hash)
        except TransactionNotFound as e:
            raise TransferNotFoundError(f"Transaction {tx_hash} not found") from e
        except (requests.exceptions.RequestException, Web3Exception, OSError) as e:
            raise TransientError(f"RPC unavailable while fetching {tx_hash}: {e}") from e

        if is_native_asset(asset):
            transfers = [
                Transfer(from_=tx["from"], to=tx.get("to") or "", value=int(tx["value"]))
            ]
        else:
            transfers = []
            for log in receipt.get("logs", []):
                topics = log.get("topics", [])
                if len(topics) < 3 or not addresses_equal(log.get("address"), asset):
                    continue
                if _topic_hex(topics[0]) != ERC20_TRANSFER_TOPIC:
                    continue
                transfers.append(
                    Transfer(
                        from_=_topic_to_address(topics[1]),
                        to=_topic_to_address(topics[2]),
                        value=_data_to_int(log.get("data", b"")),
                    )
                )

        return TransferReceipt(tx_hash=tx_hash, status=int(receipt["status"]), transfers=transfers)


# ============================================================================
# Confirmation
# ============================================================================


class TransferConfirmer:
    """Confirms transfer proofs against the network they reference.

    Transient failures are retried with exponential backoff; a confirmed
    "not found" is returned immediately.
    """

    def __init__(
        self,
        fetchers: Mapping[str, ReceiptFetcher] | None = None,
        *,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetchers: dict[int, ReceiptFetcher] = {}
        for network, fetcher in (fetchers or {}).items():
            self.register(network, fetcher)
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_rpc_urls(
        cls,
        rpc_urls: Mapping[str, str],
        *,
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
    ) -> TransferConfirmer:
        return cls(
            {network: Web3ReceiptFetcher(url, timeout=timeout) for network, url in rpc_urls.items()},
            max_retries=max_retries,
            backoff_seconds=backoff_seconds,
        )

    def register(self, network: str, fetcher: ReceiptFetcher) -> None:
        self._fetchers[get_chain_id(network)] = fetcher

    def supports(self, network: str) -> bool:
        try:
            return get_chain_id(network) in self._fetchers
        except UnsupportedNetworkError:
            return False

    def _fetch(self, proof: TransferProof, asset: str) -> TransferReceipt:
        fetcher = self._fetchers.get(get_chain_id(proof.network))
        if fetcher is None:
            raise UnsupportedNetworkError(proof.network)

        attempt = 0
        while True:
            try:
                return fetcher.get_transfer(proof.tx_hash, asset)
            except TransientError:
                if attempt >= self._max_retries:
                    raise
                delay = self._backoff_seconds * (2**attempt)
                logger.warning(
                    "RPC unavailable for %s on %s, retrying in %.2fs",
                    proof.tx_hash,
                    proof.network,
                    delay,
                )
                self._sleep(delay)
                attempt += 1

    def confirm(
        self,
        proof: TransferProof,
        authorization: Authorization,
        requirements: PaymentRequirements,
    ) -> TransferReceipt:
        """Check that the proof moved at least ``authorization.value`` to ``pay_to``.

        Raises:
            TransferNotFoundError: The node confirmed the transaction is absent.
            TransferFailedOnSourceError: The transaction reverted.
            TransferMismatchError: Sender, recipient or amount do not match.
            TransientError: The node could not be reached.
            UnsupportedNetworkError: No fetcher is configured for the network.
        """
        asset = requirements.asset if same_asset_network(proof, requirements) else NATIVE_ASSET
        receipt = self._fetch(proof, asset)

        if not receipt.succeeded:
            raise TransferFailedOnSourceError(f"Transaction {proof.tx_hash} failed on source chain")

        expected_value = int(authorization.value)
        for transfer in receipt.transfers:
            if not addresses_equal(transfer.from_, authorization.from_):
                continue
            if not addresses_equal(transfer.to, requirements.pay_to):
                continue
            if transfer.value >= expected_value:
                logger.info(
                    "Confirmed transfer %s on %s: %s -> %s (%s)",
                    proof.tx_hash,
                    proof.network,
                    transfer.from_,
                    transfer.to,
                    transfer.value,
                )
                return receipt
            raise TransferMismatchError(
                f"Transaction amount insufficient. Expected: {expected_value}, Got: {transfer.value}"
            )

        raise TransferMismatchError(
            f"Transaction {proof.tx_hash} does not move funds from "
            f"{authorization.from_} to {requirements.pay_to}"
        )


def same_asset_network(proof: TransferProof, requirements: PaymentRequirements) -> bool:
    """True if the proof lives on the network the requirement's asset belongs to."""
    try:
        return get_chain_id(proof.network) == get_chain_id(requirements.network)
    except UnsupportedNetworkError:
        return False