"""EVM mechanism for the exact scheme: EIP-712 authorizations."""

from .constants import (
    AUTHORIZATION_TYPES,
    DEFAULT_SETTLEMENT_GAS,
    DOMAIN_NAME,
    DOMAIN_VERSION,
    TX_STATUS_FAILED,
    TX_STATUS_SUCCESS,
)
from .signature import (
    build_domain,
    build_message,
    build_typed_data,
    recover_signer,
    sign_authorization,
    verify_signature,
)
from .utils import (
    addresses_equal,
    create_nonce,
    create_validity_window,
    normalize_address,
)

__all__ = [
    "AUTHORIZATION_TYPES",
    "DEFAULT_SETTLEMENT_GAS",
    "DOMAIN_NAME",
    "DOMAIN_VERSION",
    "TX_STATUS_FAILED",
    "TX_STATUS_SUCCESS",
    "build_domain",
    "build_message",
    "build_typed_data",
    "recover_signer",
    "sign_authorization",
    "verify_signature",
    "addresses_equal",
    "create_nonce",
    "create_validity_window",
    "normalize_address",
]
