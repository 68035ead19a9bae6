"""Payer-side helpers: read a 402 challenge and answer it with a signed payment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Mapping, Optional

from .encoding import decode_requirements, encode_payment, safe_base64_decode
from .mechanisms.evm.constants import DEFAULT_VALIDITY_PERIOD
from .mechanisms.evm.signature import sign_authorization
from .mechanisms.evm.utils import create_nonce, create_validity_window
from .schemas import (
    SCHEME_EXACT,
    X402_VERSION,
    Authorization,
    ExactPaymentPayload,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
)

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

X_PAYMENT_REQUIREMENTS = "x-payment-requirements"


class PaymentError(Exception):
    """Base class for payer-side payment errors."""


class MissingRequirementsError(PaymentError):
    """A 402 response carried no payment requirements."""


class PaymentAmountExceededError(PaymentError):
    """Raised when payment amount exceeds maximum allowed value."""


def parse_402_response(
    headers: Mapping[str, str], body: Optional[Mapping[str, Any]] = None
) -> PaymentRequirements:
    """Extract the payment requirements from a 402 response.

    The ``X-Payment-Requirements`` header wins; the JSON body's
    ``paymentRequirements`` is the fallback.

    Raises:
        MissingRequirementsError: If neither carries requirements.
        InvalidEncodingError: If the header does not decode.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    encoded = lowered.get(X_PAYMENT_REQUIREMENTS)
    if encoded:
        return decode_requirements(encoded)

    if body and body.get("paymentRequirements"):
        return PaymentRequirements.model_validate(body["paymentRequirements"])

    raise MissingRequirementsError("Invalid 402 response: missing X-Payment-Requirements header")


def decode_x_payment_response(header: str) -> SettleResponse:
    """Decode the ``X-Payment-Response`` header a resource server returns."""
    return SettleResponse.model_validate(json.loads(safe_base64_decode(header)))


class x402Client:
    """Signs exact-scheme payments with an eth_account ``LocalAccount``."""

    def __init__(
        self,
        account: LocalAccount,
        max_value: Optional[int] = None,
        valid_for: int = DEFAULT_VALIDITY_PERIOD,
    ) -> None:
        """
        Args:
            account: Signing account; its address becomes ``authorization.from``.
            max_value: Refuse to pay requirements above this amount.
            valid_for: Seconds each authorization stays valid.
        """
        self.account = account
        self.max_value = max_value
        self.valid_for = valid_for

    def create_payment(
        self,
        requirements: PaymentRequirements,
        *,
        amount: Optional[int] = None,
        now: Optional[int] = None,
        nonce: Optional[str] = None,
        tx_hash: Optional[str] = None,
        tx_network: Optional[str] = None,
        x402_version: int = X402_VERSION,
    ) -> PaymentPayload:
        """Build and sign a payment for ``requirements``.

        ``tx_hash``/``tx_network`` attach the proof of a transfer the payer
        already made.

        Raises:
            PaymentAmountExceededError: If the amount exceeds ``max_value``.
        """
        value = amount if amount is not None else requirements.amount
        if self.max_value is not None and value > self.max_value:
            raise PaymentAmountExceededError(
                f"Payment amount {value} exceeds maximum allowed value {self.max_value}"
            )

        valid_after, valid_before = create_validity_window(self.valid_for, now=now)
        authorization = Authorization(
            from_=self.account.address,
            to=requirements.pay_to,
            value=str(value),
            valid_after=str(valid_after),
            valid_before=str(valid_before),
            nonce=nonce or create_nonce(),
        )
        signature = sign_authorization(self.account, authorization, requirements)

        return PaymentPayload(
            x402_version=x402_version,
            scheme=SCHEME_EXACT,
            network=requirements.network,
            payload=ExactPaymentPayload(
                signature=signature,
                authorization=authorization,
                tx_hash=tx_hash,
                tx_network=tx_network,
            ),
        )

    def create_payment_header(self, requirements: PaymentRequirements, **kwargs: Any) -> str:
        """Same as ``create_payment`` but returns the encoded ``X-Payment`` value."""
        return encode_payment(self.create_payment(requirements, **kwargs))


def create_payment_header(
    account: LocalAccount, requirements: PaymentRequirements, **kwargs: Any
) -> str:
    """Sign a payment for ``requirements`` and encode it for ``X-Payment``."""
    return x402Client(account).create_payment_header(requirements, **kwargs)
