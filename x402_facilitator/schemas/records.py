"""Registry-side models: registered requirements, payment records, status."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .base import BaseX402Model
from .payments import PaymentRequirements

# Origin chain recorded for payers that live on the registry's own chain.
ORIGIN_CHAIN_NATIVE = "native"


class RegisteredRequirement(PaymentRequirements):
    """A requirement as stored by the registry, keyed by (merchant, resource)."""

    merchant: str
    requirement_id: str
    is_active: bool = True
    created_at: int
    updated_at: int

    def to_requirements(self) -> PaymentRequirements:
        return PaymentRequirements.model_validate(
            self.model_dump(include=set(PaymentRequirements.model_fields))
        )


class OriginInfo(BaseX402Model):
    """True source-chain identity behind a cross-chain proxy account."""

    chain_namespace: str
    chain_id: str
    address: str

    @property
    def chain(self) -> str:
        return f"{self.chain_namespace}:{self.chain_id}"


class PaymentRecord(BaseX402Model):
    payment_id: str
    requirement_id: str
    merchant: str
    resource: str
    payer: str
    origin_chain: str = ORIGIN_CHAIN_NATIVE
    origin_address: str
    is_origin_remote: bool = False
    amount: str
    timestamp: int
    tx_hash: str
    # Network the transfer proof was submitted on.
    tx_network: Optional[str] = None
    # Authorization nonce consumed by this payment.
    nonce: Optional[str] = None
    settled: bool = False
    settlement_ref: Optional[str] = None
    settled_at: Optional[int] = None


class PaymentStatusKind(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    SETTLING = "settling"
    SETTLED = "settled"
    FAILED = "failed"
    EXPIRED = "expired"


class PaymentStatus(BaseX402Model):
    payment_id: str
    status: PaymentStatusKind
    amount: str
    asset: str
    payer: str
    payee: str
    network: str
    resource: str
    created_at: int
    expires_at: int
    settled_at: Optional[int] = None
    tx_hash: Optional[str] = None
    settlement_ref: Optional[str] = None
    origin_chain: str
    origin_address: str
    is_origin_remote: bool
