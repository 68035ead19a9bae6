"""Verification pipeline for exact-scheme payments.

Verification is read-only: it never writes to the registry and gives the
same answer for the same inputs at the same instant, so resource servers
can call it freely before deciding to settle.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from .encoding import decode_payment
from .errors import (
    ERR_EXPIRED,
    ERR_INSUFFICIENT_AMOUNT,
    ERR_INVALID_SIGNATURE,
    ERR_NETWORK_MISMATCH,
    ERR_NONCE_ALREADY_USED,
    ERR_NOT_YET_VALID,
    ERR_RECIPIENT_MISMATCH,
    ERR_UNSUPPORTED_NETWORK,
    ERR_UNSUPPORTED_SCHEME,
    ERR_UNSUPPORTED_TOKEN,
    ERR_VERSION_MISMATCH,
    InvalidEncodingError,
    UnsupportedNetworkError,
)
from .mechanisms.evm.constants import DEFAULT_SETTLEMENT_GAS
from .mechanisms.evm.signature import verify_signature
from .mechanisms.evm.utils import addresses_equal
from .networks import get_chain_id
from .schemas import (
    SCHEME_EXACT,
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    VerifyResponse,
    is_native_asset,
)
from .tokens import TokenRegistry

logger = logging.getLogger(__name__)


class NonceLedger(Protocol):
    def is_nonce_used(self, payer: str, asset: str, nonce: str) -> bool:
        ...


class PaymentVerifier:
    """Runs the verification checks in order and stops at the first failure.

    Args:
        token_registry: Answers whether non-native assets are accepted.
        nonce_ledger: Optional read-only view of consumed nonces.
        clock: Returns the current unix time.
        estimated_gas: Reported back on success as the settlement estimate.
    """

    def __init__(
        self,
        token_registry: TokenRegistry,
        nonce_ledger: Optional[NonceLedger] = None,
        *,
        clock: Callable[[], float] = time.time,
        estimated_gas: int = DEFAULT_SETTLEMENT_GAS,
    ) -> None:
        self._token_registry = token_registry
        self._nonce_ledger = nonce_ledger
        self._clock = clock
        self._estimated_gas = estimated_gas

    def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        x402_version: int = X402_VERSION,
        *,
        at: Optional[int] = None,
        check_nonce: bool = True,
    ) -> VerifyResponse:
        """Verify a decoded payment against a requirement.

        Args:
            at: Evaluate the validity window at this unix time instead of now.
            check_nonce: Consult the nonce ledger. Off when re-checking a
                payment whose nonce it already consumed.

        Returns:
            VerifyResponse with ``is_valid`` and, on failure, the reason code.
        """
        authorization = payload.payload.authorization
        payer = authorization.from_

        if payload.x402_version != x402_version:
            return self._reject(ERR_VERSION_MISMATCH, payer)

        if payload.scheme != SCHEME_EXACT or requirements.scheme != SCHEME_EXACT:
            return self._reject(ERR_UNSUPPORTED_SCHEME, payer)

        try:
            payment_chain = get_chain_id(payload.network)
            required_chain = get_chain_id(requirements.network)
        except UnsupportedNetworkError:
            return self._reject(ERR_UNSUPPORTED_NETWORK, payer)
        if payment_chain != required_chain:
            return self._reject(ERR_NETWORK_MISMATCH, payer)

        if not verify_signature(payload, requirements):
            return self._reject(ERR_INVALID_SIGNATURE, payer)

        if not addresses_equal(authorization.to, requirements.pay_to):
            return self._reject(ERR_RECIPIENT_MISMATCH, payer)

        if authorization.amount < requirements.amount:
            return self._reject(ERR_INSUFFICIENT_AMOUNT, payer)

        if not is_native_asset(requirements.asset) and not self._token_registry.is_supported(
            requirements.asset
        ):
            return self._reject(ERR_UNSUPPORTED_TOKEN, payer)

        now = int(self._clock()) if at is None else at
        valid_after, valid_before = authorization.window
        if now < valid_after:
            return self._reject(ERR_NOT_YET_VALID, payer)
        if now > valid_before:
            return self._reject(ERR_EXPIRED, payer)

        if check_nonce and self._nonce_ledger is not None and self._nonce_ledger.is_nonce_used(
            payer, requirements.asset, authorization.nonce
        ):
            return self._reject(ERR_NONCE_ALREADY_USED, payer)

        logger.info("Payment from %s verified for %s", payer, requirements.resource)
        return VerifyResponse(
            is_valid=True,
            payer=payer,
            estimated_gas=str(self._estimated_gas),
            expires_at=valid_before,
        )

    def verify_header(
        self,
        payment_header: str,
        requirements: PaymentRequirements,
        x402_version: int = X402_VERSION,
    ) -> VerifyResponse:
        """Decode an ``X-Payment`` header and verify it."""
        try:
            payload = decode_payment(payment_header)
        except InvalidEncodingError as e:
            logger.warning("Rejected payment header: %s", e.message)
            return VerifyResponse(is_valid=False, invalid_reason=e.code)
        return self.verify(payload, requirements, x402_version)

    @staticmethod
    def _reject(reason: str, payer: str) -> VerifyResponse:
        logger.warning("Payment from %s rejected: %s", payer, reason)
        return VerifyResponse(is_valid=False, invalid_reason=reason, payer=payer)
