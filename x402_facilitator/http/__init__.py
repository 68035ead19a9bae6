"""HTTP surfaces: the facilitator service, its client and the resource-server middleware."""

from .app import API_PREFIX, create_app
from .facilitator_client import (
    DEFAULT_FACILITATOR_URL,
    FacilitatorClient,
    FacilitatorClientConfig,
    HTTPFacilitatorClient,
)
from .middleware import require_payment
from .responses import (
    X_PAYMENT_HEADER,
    X_PAYMENT_REQUIREMENTS_HEADER,
    X_PAYMENT_RESPONSE_HEADER,
    create_402_response,
    status_for_code,
)

__all__ = [
    "API_PREFIX",
    "create_app",
    "DEFAULT_FACILITATOR_URL",
    "FacilitatorClient",
    "FacilitatorClientConfig",
    "HTTPFacilitatorClient",
    "require_payment",
    "X_PAYMENT_HEADER",
    "X_PAYMENT_REQUIREMENTS_HEADER",
    "X_PAYMENT_RESPONSE_HEADER",
    "create_402_response",
    "status_for_code",
]
