import base64
import logging
from typing import Callable

import httpx
from fastapi import Request
from fastapi.concurrency import run_in_threadpool

from ..encoding import decode_payment
from ..errors import InvalidEncodingError, X402Error
from ..requirements import PricingConfig, build_requirements
from .facilitator_client import FacilitatorClient
from .responses import X_PAYMENT_HEADER, X_PAYMENT_RESPONSE_HEADER, create_402_response

logger = logging.getLogger(__name__)


def require_payment(pricing: PricingConfig, facilitator: FacilitatorClient):
    """Generate a FastAPI middleware that gates priced paths behind payment.

    Paths with an entry in ``pricing.prices`` require an ``X-Payment``
    header. Without one the middleware answers with a 402 challenge. With
    one it verifies through ``facilitator``, runs the handler, and settles
    only if the handler returned a 2xx response.

    Args:
        pricing (PricingConfig): Prices per request path and where to pay.
        facilitator (FacilitatorClient): Remote ``HTTPFacilitatorClient`` or
            an in-process ``x402Facilitator``.

    Returns:
        Callable: middleware for ``app.middleware("http")``
    """
    # Fail at startup rather than on the first request.
    for resource in pricing.prices:
        build_requirements(pricing, resource)

    async def middleware(request: Request, call_next: Callable):
        resource = request.url.path
        if pricing.price_for(resource) is None:
            return await call_next(request)

        requirements = build_requirements(pricing, resource)

        payment_header = request.headers.get(X_PAYMENT_HEADER, "")
        if payment_header == "":
            return create_402_response(requirements)

        try:
            payment = decode_payment(payment_header)
        except InvalidEncodingError as e:
            logger.warning(
                "Invalid payment header from %s: %s",
                request.client.host if request.client else "unknown",
                e.message,
            )
            return create_402_response(requirements, "Invalid payment header format")

        verify_response = await run_in_threadpool(facilitator.verify, payment, requirements)
        if not verify_response.is_valid:
            reason = verify_response.invalid_reason or "unknown"
            return create_402_response(requirements, f"Invalid payment: {reason}")

        request.state.payment_requirements = requirements
        request.state.verify_response = verify_response

        response = await call_next(request)

        # Early return without settling if the response is not a 2xx
        if response.status_code < 200 or response.status_code >= 300:
            return response

        try:
            settle_response = await run_in_threadpool(facilitator.settle, payment, requirements)
        except (X402Error, ValueError, httpx.HTTPError) as e:
            logger.warning("Settlement of %s failed: %s", resource, e)
            return create_402_response(requirements, "Settle failed")

        if not settle_response.success:
            return create_402_response(
                requirements, f"Settle failed: {settle_response.error or 'unknown'}"
            )

        settle_json = settle_response.model_dump_json(by_alias=True).encode("utf-8")
        response.headers[X_PAYMENT_RESPONSE_HEADER] = base64.b64encode(settle_json).decode("utf-8")
        return response

    return middleware
