"""Error taxonomy for payment verification, settlement and the registry.

Errors are raised inside the core and converted into structured
``VerifyResponse`` / ``SettleResponse`` results at the protocol boundary.
Each error carries a stable snake_case ``code`` (the wire reason string),
a ``category`` used by the HTTP layer to pick a status code, and a
``retryable`` flag that is only ever true for transient failures.
"""

from __future__ import annotations

from enum import Enum

# Malformed input
ERR_INVALID_ENCODING = "invalid_encoding"
ERR_INVALID_REQUEST = "invalid_request"
ERR_VERSION_MISMATCH = "version_mismatch"
ERR_UNSUPPORTED_SCHEME = "unsupported_scheme"
ERR_UNSUPPORTED_NETWORK = "unsupported_network"
ERR_INVALID_AMOUNT = "invalid_amount"
ERR_INVALID_RECIPIENT = "invalid_recipient"
ERR_EMPTY_RESOURCE = "empty_resource"

# Authorization invalid
ERR_INVALID_SIGNATURE = "invalid_signature"
ERR_RECIPIENT_MISMATCH = "recipient_mismatch"
ERR_NETWORK_MISMATCH = "network_mismatch"
ERR_INSUFFICIENT_AMOUNT = "insufficient_amount"
ERR_UNSUPPORTED_TOKEN = "unsupported_token"
ERR_NOT_YET_VALID = "not_yet_valid"
ERR_EXPIRED = "expired"
ERR_NONCE_ALREADY_USED = "nonce_already_used"
ERR_PAYMENT_ABORTED = "payment_aborted"

# Transfer unproven
ERR_MISSING_TRANSFER_PROOF = "missing_transfer_proof"
ERR_TRANSFER_MISMATCH = "transfer_mismatch"
ERR_TRANSFER_FAILED_ON_SOURCE = "transfer_failed_on_source"
ERR_TRANSFER_NOT_FOUND = "transfer_not_found"

# Registry conflict
ERR_REQUIREMENT_NOT_FOUND = "requirement_not_found"
ERR_REQUIREMENT_NOT_ACTIVE = "requirement_not_active"
ERR_ALREADY_RECORDED = "already_recorded"
ERR_ALREADY_SETTLED = "already_settled"
ERR_PAYMENT_NOT_FOUND = "payment_not_found"

# Access control
ERR_UNAUTHORIZED = "unauthorized"

# Transient / infrastructure
ERR_RPC_UNAVAILABLE = "rpc_unavailable"

# Anything not covered above
ERR_INTERNAL = "internal_error"


class ErrorCategory(str, Enum):
    """Broad error classes, each handled differently by callers."""

    MALFORMED = "malformed"
    AUTHORIZATION = "authorization"
    TRANSFER = "transfer"
    CONFLICT = "conflict"
    ACCESS = "access"
    TRANSIENT = "transient"
    INTERNAL = "internal"


class X402Error(Exception):
    """Base class for every protocol error."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    default_code: str = ERR_INTERNAL

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.code = code or self.default_code
        self.message = message or self.code
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.category is ErrorCategory.TRANSIENT

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ============================================================================
# Malformed input
# ============================================================================


class MalformedPaymentError(X402Error):
    """Client sent something that cannot be interpreted."""

    category = ErrorCategory.MALFORMED
    default_code = ERR_INVALID_REQUEST


class InvalidEncodingError(MalformedPaymentError):
    """Payment header is not base64(JSON(PaymentPayload))."""

    default_code = ERR_INVALID_ENCODING


class UnsupportedNetworkError(MalformedPaymentError):
    """Network identifier is not in the supported table."""

    default_code = ERR_UNSUPPORTED_NETWORK

    def __init__(self, network: str) -> None:
        self.network = network
        super().__init__(f"Unsupported network: {network}")


class InvalidRequirementError(MalformedPaymentError):
    """A payment requirement violates its invariants."""


class InvalidAmountError(InvalidRequirementError):
    default_code = ERR_INVALID_AMOUNT


class InvalidRecipientError(InvalidRequirementError):
    default_code = ERR_INVALID_RECIPIENT


class EmptyResourceError(InvalidRequirementError):
    default_code = ERR_EMPTY_RESOURCE


# ============================================================================
# Authorization invalid
# ============================================================================


class AuthorizationInvalidError(X402Error):
    """The signed authorization cannot be accepted as-is."""

    category = ErrorCategory.AUTHORIZATION
    default_code = ERR_INVALID_SIGNATURE


class InsufficientAmountError(AuthorizationInvalidError):
    default_code = ERR_INSUFFICIENT_AMOUNT


class NonceAlreadyUsedError(AuthorizationInvalidError):
    default_code = ERR_NONCE_ALREADY_USED


class PaymentAbortedError(AuthorizationInvalidError):
    """A before-hook refused the payment."""

    default_code = ERR_PAYMENT_ABORTED


# ============================================================================
# Transfer unproven
# ============================================================================


class TransferUnprovenError(X402Error):
    """The authorization may be fine but the money has not been shown to move."""

    category = ErrorCategory.TRANSFER
    default_code = ERR_MISSING_TRANSFER_PROOF


class MissingTransferProofError(TransferUnprovenError):
    default_code = ERR_MISSING_TRANSFER_PROOF


class TransferMismatchError(TransferUnprovenError):
    default_code = ERR_TRANSFER_MISMATCH


class TransferFailedOnSourceError(TransferUnprovenError):
    default_code = ERR_TRANSFER_FAILED_ON_SOURCE


class TransferNotFoundError(TransferUnprovenError):
    """The node answered and the transaction does not exist."""

    default_code = ERR_TRANSFER_NOT_FOUND


# ============================================================================
# Registry conflict
# ============================================================================


class RegistryConflictError(X402Error):
    """Registry state machine was asked for an illegal transition."""

    category = ErrorCategory.CONFLICT
    default_code = ERR_ALREADY_RECORDED


class RequirementNotFoundError(RegistryConflictError):
    default_code = ERR_REQUIREMENT_NOT_FOUND


class RequirementNotActiveError(RegistryConflictError):
    default_code = ERR_REQUIREMENT_NOT_ACTIVE


class AlreadyRecordedError(RegistryConflictError):
    default_code = ERR_ALREADY_RECORDED

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} already recorded")


class AlreadySettledError(RegistryConflictError):
    default_code = ERR_ALREADY_SETTLED

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} already settled")


class PaymentNotFoundError(RegistryConflictError):
    default_code = ERR_PAYMENT_NOT_FOUND

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} not found")


# ============================================================================
# Access control
# ============================================================================


class AccessDeniedError(X402Error):
    """Caller lacks the role required for a registry write."""

    category = ErrorCategory.ACCESS
    default_code = ERR_UNAUTHORIZED

    def __init__(self, caller: str, role: str) -> None:
        self.caller = caller
        self.role = role
        super().__init__(f"{caller} is missing role {role}")


# ============================================================================
# Transient
# ============================================================================


class TransientError(X402Error):
    """Node timeout or unavailability. The only retryable class."""

    category = ErrorCategory.TRANSIENT
    default_code = ERR_RPC_UNAVAILABLE


# ============================================================================
# Reason code lookup
# ============================================================================

CODE_CATEGORIES: dict[str, ErrorCategory] = {
    ERR_INVALID_ENCODING: ErrorCategory.MALFORMED,
    ERR_INVALID_REQUEST: ErrorCategory.MALFORMED,
    ERR_VERSION_MISMATCH: ErrorCategory.MALFORMED,
    ERR_UNSUPPORTED_SCHEME: ErrorCategory.MALFORMED,
    ERR_UNSUPPORTED_NETWORK: ErrorCategory.MALFORMED,
    ERR_INVALID_AMOUNT: ErrorCategory.MALFORMED,
    ERR_INVALID_RECIPIENT: ErrorCategory.MALFORMED,
    ERR_EMPTY_RESOURCE: ErrorCategory.MALFORMED,
    ERR_INVALID_SIGNATURE: ErrorCategory.AUTHORIZATION,
    ERR_RECIPIENT_MISMATCH: ErrorCategory.AUTHORIZATION,
    ERR_NETWORK_MISMATCH: ErrorCategory.AUTHORIZATION,
    ERR_INSUFFICIENT_AMOUNT: ErrorCategory.AUTHORIZATION,
    ERR_UNSUPPORTED_TOKEN: ErrorCategory.AUTHORIZATION,
    ERR_NOT_YET_VALID: ErrorCategory.AUTHORIZATION,
    ERR_EXPIRED: ErrorCategory.AUTHORIZATION,
    ERR_NONCE_ALREADY_USED: ErrorCategory.AUTHORIZATION,
    ERR_PAYMENT_ABORTED: ErrorCategory.AUTHORIZATION,
    ERR_MISSING_TRANSFER_PROOF: ErrorCategory.TRANSFER,
    ERR_TRANSFER_MISMATCH: ErrorCategory.TRANSFER,
    ERR_TRANSFER_FAILED_ON_SOURCE: ErrorCategory.TRANSFER,
    ERR_TRANSFER_NOT_FOUND: ErrorCategory.TRANSFER,
    ERR_REQUIREMENT_NOT_FOUND: ErrorCategory.CONFLICT,
    ERR_REQUIREMENT_NOT_ACTIVE: ErrorCategory.CONFLICT,
    ERR_ALREADY_RECORDED: ErrorCategory.CONFLICT,
    ERR_ALREADY_SETTLED: ErrorCategory.CONFLICT,
    ERR_PAYMENT_NOT_FOUND: ErrorCategory.CONFLICT,
    ERR_UNAUTHORIZED: ErrorCategory.ACCESS,
    ERR_RPC_UNAVAILABLE: ErrorCategory.TRANSIENT,
    ERR_INTERNAL: ErrorCategory.INTERNAL,
}


def category_for_code(code: str | None) -> ErrorCategory:
    """Category of a wire reason code. Unknown codes are internal."""
    return CODE_CATEGORIES.get(code or ERR_INTERNAL, ErrorCategory.INTERNAL)
