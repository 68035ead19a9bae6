"""Requirement, authorization and payload models."""

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import Field, field_validator

from .base import NATIVE_ASSET, SCHEME_EXACT, BaseX402Model, hex_address, uint_string

_NONCE_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class PaymentRequirements(BaseX402Model):
    """What a resource costs and how to pay for it."""

    scheme: str = SCHEME_EXACT
    network: str
    max_amount_required: str
    resource: str
    description: str = ""
    mime_type: str = "application/json"
    pay_to: str
    max_timeout_seconds: int
    asset: str = NATIVE_ASSET
    extra: Optional[dict[str, Any]] = None

    @field_validator("max_amount_required", mode="before")
    @classmethod
    def validate_max_amount_required(cls, v):
        return uint_string(v, "maxAmountRequired")

    @property
    def amount(self) -> int:
        return int(self.max_amount_required)


class Authorization(BaseX402Model):
    """Payer's signed, time-bounded, nonce-unique promise to transfer value."""

    from_: str = Field(alias="from")
    to: str
    value: str
    valid_after: str
    valid_before: str
    nonce: str

    @field_validator("from_", "to")
    @classmethod
    def validate_addresses(cls, v, info):
        return hex_address(v, info.field_name.rstrip("_"))

    @field_validator("value", "valid_after", "valid_before", mode="before")
    @classmethod
    def validate_integers(cls, v, info):
        return uint_string(v, info.field_name)

    @field_validator("nonce")
    @classmethod
    def validate_nonce(cls, v):
        if not _NONCE_RE.match(v):
            raise ValueError("nonce must be a 32-byte hex string")
        return v

    @property
    def amount(self) -> int:
        return int(self.value)

    @property
    def window(self) -> tuple[int, int]:
        return int(self.valid_after), int(self.valid_before)


class ExactPaymentPayload(BaseX402Model):
    """Scheme payload for ``exact``: signature, authorization, optional proof."""

    signature: str
    authorization: Authorization
    tx_hash: Optional[str] = None
    tx_network: Optional[str] = None

    @field_validator("tx_hash")
    @classmethod
    def validate_tx_hash(cls, v):
        if v is not None and not _TX_HASH_RE.match(v):
            raise ValueError("txHash must be a 32-byte hex string")
        return v


class PaymentPayload(BaseX402Model):
    """The ``X-Payment`` envelope."""

    x402_version: int
    scheme: str
    network: str
    payload: ExactPaymentPayload

    @property
    def authorization(self) -> Authorization:
        return self.payload.authorization

    @property
    def payer(self) -> str:
        return self.payload.authorization.from_
