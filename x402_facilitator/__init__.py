"""x402 facilitator - HTTP 402 payment verification and settlement.

A client signs an exact-scheme payment authorization; the facilitator
verifies it, confirms the transfer behind it, records it in the payment
registry and marks it settled, which unlocks the guarded resource.

Quick Start:
    ```python
    from x402_facilitator import load_config, create_facilitator
    from x402_facilitator.http import create_app

    config = load_config()
    facilitator = create_facilitator(config)
    app = create_app(facilitator, config)

    # Or in-process
    result = facilitator.verify(payload, requirements)
    if result.is_valid:
        settled = facilitator.settle(payload, requirements)
    ```
"""

# Core components
from .client import create_payment_header, parse_402_response, x402Client
from .config import ConfigError, FacilitatorConfig, configure_logging, load_config
from .facilitator import create_facilitator, x402Facilitator
from .registry import InMemoryPaymentRegistry, PaymentRegistry, Role
from .requirements import PricingConfig, RequirementService, ResourcePrice, build_requirements
from .settlement import PaymentSettler
from .status import StatusService
from .verification import PaymentVerifier

# Collaborators
from .origin import NativeOriginResolver, OriginResolver, StaticOriginResolver
from .tokens import ContractTokenRegistry, StaticTokenRegistry, TokenRegistry
from .transfers import (
    ReceiptFetcher,
    TransferConfirmer,
    TransferExecutor,
    TransferProof,
    Web3ReceiptFetcher,
)

# Codec
from .encoding import decode_payment, decode_requirements, encode_payment, encode_requirements

# Errors
from .errors import (
    AccessDeniedError,
    AuthorizationInvalidError,
    ErrorCategory,
    MalformedPaymentError,
    RegistryConflictError,
    TransferUnprovenError,
    TransientError,
    X402Error,
)

# Types
from .schemas import (
    NATIVE_ASSET,
    X402_VERSION,
    Authorization,
    ExactPaymentPayload,
    OriginInfo,
    PaymentPayload,
    PaymentRecord,
    PaymentRequirements,
    PaymentStatus,
    PaymentStatusKind,
    SettleResponse,
    VerifyResponse,
)

__version__ = "1.0.0"

__all__ = [
    # Core
    "x402Facilitator",
    "create_facilitator",
    "x402Client",
    "create_payment_header",
    "parse_402_response",
    "FacilitatorConfig",
    "ConfigError",
    "load_config",
    "configure_logging",
    "InMemoryPaymentRegistry",
    "PaymentRegistry",
    "Role",
    "PricingConfig",
    "ResourcePrice",
    "RequirementService",
    "build_requirements",
    "PaymentVerifier",
    "PaymentSettler",
    "StatusService",
    # Collaborators
    "OriginResolver",
    "NativeOriginResolver",
    "StaticOriginResolver",
    "TokenRegistry",
    "StaticTokenRegistry",
    "ContractTokenRegistry",
    "ReceiptFetcher",
    "Web3ReceiptFetcher",
    "TransferConfirmer",
    "TransferExecutor",
    "TransferProof",
    # Codec
    "encode_payment",
    "decode_payment",
    "encode_requirements",
    "decode_requirements",
    # Errors
    "X402Error",
    "ErrorCategory",
    "MalformedPaymentError",
    "AuthorizationInvalidError",
    "TransferUnprovenError",
    "RegistryConflictError",
    "AccessDeniedError",
    "TransientError",
    # Types
    "X402_VERSION",
    "NATIVE_ASSET",
    "Authorization",
    "ExactPaymentPayload",
    "PaymentPayload",
    "PaymentRequirements",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentStatusKind",
    "OriginInfo",
    "VerifyResponse",
    "SettleResponse",
    "__version__",
]
