"""Pydantic models for the x402 wire format and the payment registry."""

from .base import (
    NATIVE_ASSET,
    SCHEME_EXACT,
    X402_VERSION,
    ZERO_ADDRESS,
    BaseX402Model,
    is_native_asset,
)
from .payments import (
    Authorization,
    ExactPaymentPayload,
    PaymentPayload,
    PaymentRequirements,
)
from .records import (
    ORIGIN_CHAIN_NATIVE,
    OriginInfo,
    PaymentRecord,
    PaymentStatus,
    PaymentStatusKind,
    RegisteredRequirement,
)
from .responses import (
    ErrorResponse,
    PaymentRequiredResponse,
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
)

__all__ = [
    # Base
    "X402_VERSION",
    "SCHEME_EXACT",
    "NATIVE_ASSET",
    "ZERO_ADDRESS",
    "BaseX402Model",
    "is_native_asset",
    # Payments
    "Authorization",
    "ExactPaymentPayload",
    "PaymentPayload",
    "PaymentRequirements",
    # Registry
    "ORIGIN_CHAIN_NATIVE",
    "OriginInfo",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentStatusKind",
    "RegisteredRequirement",
    # Requests / responses
    "ErrorResponse",
    "PaymentRequiredResponse",
    "SettleRequest",
    "SettleResponse",
    "VerifyRequest",
    "VerifyResponse",
]
