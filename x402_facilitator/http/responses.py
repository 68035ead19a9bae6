"""402 challenges and error-to-status mapping shared by the HTTP surfaces."""

from __future__ import annotations

import time
import uuid
from typing import Optional

from fastapi.responses import JSONResponse

from ..encoding import encode_requirements
from ..errors import ERR_PAYMENT_NOT_FOUND, ErrorCategory, category_for_code
from ..schemas import ErrorResponse, PaymentRequiredResponse, PaymentRequirements

X_PAYMENT_HEADER = "X-Payment"
X_PAYMENT_REQUIREMENTS_HEADER = "X-Payment-Requirements"
X_PAYMENT_RESPONSE_HEADER = "X-Payment-Response"

CATEGORY_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.MALFORMED: 400,
    ErrorCategory.AUTHORIZATION: 402,
    ErrorCategory.TRANSFER: 402,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.ACCESS: 403,
    ErrorCategory.TRANSIENT: 503,
    ErrorCategory.INTERNAL: 500,
}

# Categories whose details stay server-side.
OPAQUE_CATEGORIES = {ErrorCategory.TRANSIENT, ErrorCategory.INTERNAL}

GENERIC_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.TRANSIENT: "Service temporarily unavailable, retry later",
    ErrorCategory.INTERNAL: "Internal server error",
}


def status_for_code(code: Optional[str]) -> int:
    if code == ERR_PAYMENT_NOT_FOUND:
        return 404
    return CATEGORY_STATUS[category_for_code(code)]


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def error_response(
    code: str,
    message: str,
    status_code: int,
    correlation_id: str | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        code=code,
        message=message,
        correlation_id=correlation_id,
        timestamp=int(time.time()),
    )
    return JSONResponse(content=body.to_wire(), status_code=status_code)


def opaque_error_response(code: str, correlation_id: str) -> JSONResponse:
    """Error body for transient and internal failures: code and correlation id only."""
    category = category_for_code(code)
    if category not in OPAQUE_CATEGORIES:
        category = ErrorCategory.INTERNAL
    return error_response(
        code,
        GENERIC_MESSAGES[category],
        CATEGORY_STATUS[category],
        correlation_id=correlation_id,
    )


def create_402_response(
    requirements: PaymentRequirements,
    message: str = "Payment required to access this resource",
) -> JSONResponse:
    """Build the 402 challenge for a guarded resource.

    The requirements travel both in the body and, base64-encoded, in the
    ``X-Payment-Requirements`` header.
    """
    body = PaymentRequiredResponse(message=message, payment_requirements=requirements)
    return JSONResponse(
        content=body.to_wire(),
        status_code=402,
        headers={X_PAYMENT_REQUIREMENTS_HEADER: encode_requirements(requirements)},
    )
