"""HTTP client resource servers use to reach a remote facilitator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from ..encoding import encode_payment
from ..errors import PaymentNotFoundError, TransientError
from ..schemas import (
    PaymentPayload,
    PaymentRequirements,
    PaymentStatus,
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
)

if TYPE_CHECKING:
    import httpx

DEFAULT_FACILITATOR_URL = "http://localhost:3001"


# ============================================================================
# FacilitatorClient Protocol
# ============================================================================


class FacilitatorClient(Protocol):
    """Anything that can verify and settle: a remote client or a local facilitator.

    verify/settle return response objects with is_valid/success=False on failure.
    """

    def verify(self, payload: PaymentPayload, requirements: PaymentRequirements) -> VerifyResponse:
        ...

    def settle(self, payload: PaymentPayload, requirements: PaymentRequirements) -> SettleResponse:
        ...


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class FacilitatorClientConfig:
    """Configuration for HTTP facilitator client."""

    url: str = DEFAULT_FACILITATOR_URL
    timeout: float = 30.0
    http_client: Any = None  # Optional httpx.Client


# ============================================================================
# HTTP Facilitator Client
# ============================================================================


class HTTPFacilitatorClient:
    """Talks to a facilitator service over HTTP."""

    def __init__(self, config: FacilitatorClientConfig | None = None) -> None:
        config = config or FacilitatorClientConfig()

        self._url = config.url.rstrip("/")
        self._timeout = config.timeout
        self._http_client = config.http_client
        self._owns_client = config.http_client is None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._http_client is None:
            import httpx

            self._http_client = httpx.Client(timeout=self._timeout, follow_redirects=True)
        return self._http_client

    def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._http_client:
            self._http_client.close()
            self._http_client = None

    def __enter__(self) -> HTTPFacilitatorClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def url(self) -> str:
        return self._url

    # =========================================================================
    # FacilitatorClient Implementation
    # =========================================================================

    def verify(self, payload: PaymentPayload, requirements: PaymentRequirements) -> VerifyResponse:
        """Verify a payment with the facilitator.

        Raises:
            httpx.HTTPError: If the request fails.
            ValueError: If the facilitator answers with an error status.
        """
        body = VerifyRequest(
            x402_version=payload.x402_version,
            payment_header=encode_payment(payload),
            payment_requirements=requirements,
        )
        response = self._get_client().post(f"{self._url}/verify", json=body.to_wire())

        if response.status_code != 200:
            raise ValueError(f"Facilitator verify failed ({response.status_code}): {response.text}")

        return VerifyResponse.model_validate(response.json())

    def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        payment_id: str | None = None,
    ) -> SettleResponse:
        """Settle a payment with the facilitator.

        Protocol failures (402, 409, ...) come back as ``success=False``.

        Raises:
            TransientError: If the facilitator reports a retryable failure.
            httpx.HTTPError: If the request fails.
            ValueError: On any other error status.
        """
        body = SettleRequest(
            x402_version=payload.x402_version,
            payment_header=encode_payment(payload),
            payment_requirements=requirements,
            payment_id=payment_id,
        )
        response = self._get_client().post(f"{self._url}/settle", json=body.to_wire())

        if response.status_code == 503:
            raise TransientError(f"Facilitator unavailable: {response.text}")
        if response.status_code >= 500:
            raise ValueError(f"Facilitator settle failed ({response.status_code}): {response.text}")

        data = response.json()
        if response.status_code != 200 and "success" not in data:
            raise ValueError(f"Facilitator settle failed ({response.status_code}): {response.text}")
        return SettleResponse.model_validate(data)

    def get_status(self, payment_id: str) -> PaymentStatus:
        """Fetch payment status.

        Raises:
            PaymentNotFoundError: If the facilitator has no such payment.
            ValueError: On any other error status.
        """
        response = self._get_client().get(f"{self._url}/status/{payment_id}")

        if response.status_code == 404:
            raise PaymentNotFoundError(payment_id)
        if response.status_code != 200:
            raise ValueError(f"Facilitator status failed ({response.status_code}): {response.text}")

        return PaymentStatus.model_validate(response.json())
