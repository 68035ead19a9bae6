"""FastAPI facilitator service.

Routes are served at the root and again under ``/api/v1``::

    POST /verify
    POST /settle
    GET  /status/{paymentId}
    GET  /health

Handlers are plain ``def`` functions: the core is synchronous and FastAPI
runs them in its threadpool.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import FacilitatorConfig
from ..errors import ERR_INTERNAL, ERR_INVALID_REQUEST, X402Error
from ..facilitator import x402Facilitator
from ..schemas import SettleRequest, VerifyRequest
from .responses import (
    OPAQUE_CATEGORIES,
    error_response,
    new_correlation_id,
    opaque_error_response,
    status_for_code,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_PAYMENT_ID_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def _build_router(facilitator: x402Facilitator) -> APIRouter:
    router = APIRouter()

    @router.post("/verify")
    def verify(body: VerifyRequest) -> JSONResponse:
        """Verify a payment header. Always 200; the verdict is in the body."""
        result = facilitator.verify_header(body.payment_header, body.payment_requirements)
        return JSONResponse(content=result.to_wire())

    @router.post("/settle")
    def settle(body: SettleRequest) -> JSONResponse:
        result = facilitator.settle_header(
            body.payment_header, body.payment_requirements, payment_id=body.payment_id
        )
        if result.success:
            return JSONResponse(content=result.to_wire())

        status_code = status_for_code(result.error)
        if status_code >= 500:
            correlation_id = new_correlation_id()
            logger.warning("Settlement failed [%s]: %s", correlation_id, result.error)
            return opaque_error_response(result.error or ERR_INTERNAL, correlation_id)
        return JSONResponse(content=result.to_wire(), status_code=status_code)

    @router.get("/status/{payment_id}")
    def status(payment_id: str) -> JSONResponse:
        if not _PAYMENT_ID_RE.match(payment_id):
            return error_response(ERR_INVALID_REQUEST, "Invalid payment ID format", 400)
        return JSONResponse(content=facilitator.get_status(payment_id).to_wire())

    @router.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "facilitator": facilitator.facilitator_address,
            "x402Version": facilitator.x402_version,
            "timestamp": int(time.time()),
        }

    return router


def create_app(
    facilitator: x402Facilitator,
    config: Optional[FacilitatorConfig] = None,
) -> FastAPI:
    """Build the facilitator FastAPI application."""
    app = FastAPI(
        title="x402 Facilitator",
        description="Verifies and settles x402 payments against the payment registry",
        version="1.0.0",
    )
    app.state.facilitator = facilitator
    app.state.config = config

    router = _build_router(facilitator)
    app.include_router(router)
    app.include_router(router, prefix=API_PREFIX)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
        return error_response(ERR_INVALID_REQUEST, "Malformed request body", 400)

    @app.exception_handler(X402Error)
    async def handle_x402_error(request: Request, exc: X402Error):
        if exc.category in OPAQUE_CATEGORIES:
            correlation_id = new_correlation_id()
            logger.error(
                "%s on %s [%s]: %s", exc.code, request.url.path, correlation_id, exc.message
            )
            return opaque_error_response(exc.code, correlation_id)
        return error_response(exc.code, exc.message, status_for_code(exc.code))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        correlation_id = new_correlation_id()
        logger.error(
            "Unexpected error on %s [%s]", request.url.path, correlation_id, exc_info=exc
        )
        return opaque_error_response(ERR_INTERNAL, correlation_id)

    return app
