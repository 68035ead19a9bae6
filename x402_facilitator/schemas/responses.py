"""Request and response bodies for the facilitator and resource server."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import X402_VERSION, BaseX402Model
from .payments import PaymentRequirements


class VerifyRequest(BaseX402Model):
    x402_version: int = X402_VERSION
    payment_header: str
    payment_requirements: PaymentRequirements


class SettleRequest(BaseX402Model):
    x402_version: int = X402_VERSION
    payment_header: str
    payment_requirements: PaymentRequirements
    payment_id: Optional[str] = None


class VerifyResponse(BaseX402Model):
    is_valid: bool
    invalid_reason: Optional[str] = None
    payer: Optional[str] = None
    payment_id: Optional[str] = None
    estimated_gas: Optional[str] = None
    expires_at: Optional[int] = None


class SettleResponse(BaseX402Model):
    success: bool
    error: Optional[str] = None
    tx_hash: Optional[str] = None
    network_id: Optional[str] = None
    timestamp: int = 0
    registry_tx_hash: Optional[str] = None
    payment_id: Optional[str] = None
    payer: Optional[str] = None
    # Recorded but the transfer is still awaiting confirmation.
    pending: bool = False


class PaymentRequiredResponse(BaseX402Model):
    """Body of a 402 challenge."""

    error: str = "Payment Required"
    message: str
    payment_requirements: PaymentRequirements


class ErrorResponse(BaseX402Model):
    code: str
    message: str
    correlation_id: Optional[str] = Field(default=None)
    timestamp: int
