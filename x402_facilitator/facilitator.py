"""x402Facilitator - verification, settlement and status behind one object.

Wraps the verification and settlement pipelines with lifecycle hooks and
is what the HTTP app and in-process resource servers talk to.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from typing_extensions import Self

from .config import FacilitatorConfig
from .encoding import decode_payment
from .errors import InvalidEncodingError, PaymentAbortedError
from .origin import OriginResolver
from .registry import InMemoryPaymentRegistry, PaymentRegistry
from .schemas import (
    PaymentPayload,
    PaymentRequirements,
    PaymentStatus,
    SettleResponse,
    VerifyResponse,
)
from .settlement import PaymentSettler
from .status import StatusService
from .tokens import StaticTokenRegistry, TokenRegistry
from .transfers import TransferConfirmer, TransferExecutor, TransferProof
from .verification import PaymentVerifier

logger = logging.getLogger(__name__)


# ============================================================================
# Hook Contexts
# ============================================================================


@dataclass
class VerifyContext:
    payment_payload: PaymentPayload
    requirements: PaymentRequirements


@dataclass
class VerifyResultContext(VerifyContext):
    result: VerifyResponse


@dataclass
class VerifyFailureContext(VerifyContext):
    error: Exception


@dataclass
class SettleContext:
    payment_payload: PaymentPayload
    requirements: PaymentRequirements


@dataclass
class SettleResultContext(SettleContext):
    result: SettleResponse


@dataclass
class SettleFailureContext(SettleContext):
    error: Exception


@dataclass
class AbortResult:
    reason: str


@dataclass
class RecoveredVerifyResult:
    result: VerifyResponse


@dataclass
class RecoveredSettleResult:
    result: SettleResponse


BeforeVerifyHook = Callable[[VerifyContext], Optional[AbortResult]]
AfterVerifyHook = Callable[[VerifyResultContext], None]
OnVerifyFailureHook = Callable[[VerifyFailureContext], Optional[RecoveredVerifyResult]]

BeforeSettleHook = Callable[[SettleContext], Optional[AbortResult]]
AfterSettleHook = Callable[[SettleResultContext], None]
OnSettleFailureHook = Callable[[SettleFailureContext], Optional[RecoveredSettleResult]]


# ============================================================================
# x402Facilitator
# ============================================================================


class x402Facilitator:
    """Payment verification and settlement component.

    Example:
        ```python
        registry = InMemoryPaymentRegistry(admin)
        facilitator = x402Facilitator(
            PaymentVerifier(StaticTokenRegistry(), registry),
            PaymentSettler(verifier, registry, facilitator_address),
            StatusService(registry),
        )
        facilitator.on_after_settle(lambda ctx: print(ctx.result.payment_id))

        result = facilitator.verify(payload, requirements)
        ```
    """

    def __init__(
        self,
        verifier: PaymentVerifier,
        settler: PaymentSettler,
        status: StatusService,
        *,
        x402_version: int = 1,
    ) -> None:
        self._verifier = verifier
        self._settler = settler
        self._status = status
        self._x402_version = x402_version

        # Hooks
        self._before_verify_hooks: list[BeforeVerifyHook] = []
        self._after_verify_hooks: list[AfterVerifyHook] = []
        self._on_verify_failure_hooks: list[OnVerifyFailureHook] = []

        self._before_settle_hooks: list[BeforeSettleHook] = []
        self._after_settle_hooks: list[AfterSettleHook] = []
        self._on_settle_failure_hooks: list[OnSettleFailureHook] = []

    @property
    def x402_version(self) -> int:
        return self._x402_version

    @property
    def facilitator_address(self) -> str:
        return self._settler.facilitator_address

    # ========================================================================
    # Hook Registration
    # ========================================================================

    def on_before_verify(self, hook: BeforeVerifyHook) -> Self:
        """Register a hook run before verification. Returning AbortResult aborts."""
        self._before_verify_hooks.append(hook)
        return self

    def on_after_verify(self, hook: AfterVerifyHook) -> Self:
        self._after_verify_hooks.append(hook)
        return self

    def on_verify_failure(self, hook: OnVerifyFailureHook) -> Self:
        """Register a hook run on failed verification. Can recover the result."""
        self._on_verify_failure_hooks.append(hook)
        return self

    def on_before_settle(self, hook: BeforeSettleHook) -> Self:
        self._before_settle_hooks.append(hook)
        return self

    def on_after_settle(self, hook: AfterSettleHook) -> Self:
        self._after_settle_hooks.append(hook)
        return self

    def on_settle_failure(self, hook: OnSettleFailureHook) -> Self:
        self._on_settle_failure_hooks.append(hook)
        return self

    # ========================================================================
    # Verify
    # ========================================================================

    def verify(self, payload: PaymentPayload, requirements: PaymentRequirements) -> VerifyResponse:
        """Verify a payment.

        Returns:
            VerifyResponse with is_valid=True or is_valid=False.

        Raises:
            PaymentAbortedError: If a before hook aborts.
        """
        context = VerifyContext(payment_payload=payload, requirements=requirements)

        for hook in self._before_verify_hooks:
            result = hook(context)
            if isinstance(result, AbortResult):
                raise PaymentAbortedError(result.reason)

        try:
            verify_result = self._verifier.verify(payload, requirements, self._x402_version)
        except Exception as e:
            failure_context = VerifyFailureContext(
                payment_payload=payload, requirements=requirements, error=e
            )
            for hook in self._on_verify_failure_hooks:
                result = hook(failure_context)
                if isinstance(result, RecoveredVerifyResult):
                    return result.result
            raise

        if not verify_result.is_valid:
            failure_context = VerifyFailureContext(
                payment_payload=payload,
                requirements=requirements,
                error=Exception(verify_result.invalid_reason or "Verification failed"),
            )
            for hook in self._on_verify_failure_hooks:
                result = hook(failure_context)
                if isinstance(result, RecoveredVerifyResult):
                    verify_result = result.result
                    break
            else:
                return verify_result

        result_context = VerifyResultContext(
            payment_payload=payload, requirements=requirements, result=verify_result
        )
        for hook in self._after_verify_hooks:
            hook(result_context)
        return verify_result

    def verify_header(
        self, payment_header: str, requirements: PaymentRequirements
    ) -> VerifyResponse:
        """Decode an ``X-Payment`` header and verify it.

        A header that does not decode is an invalid payment, not an error.
        """
        try:
            payload = decode_payment(payment_header)
        except InvalidEncodingError as e:
            return VerifyResponse(is_valid=False, invalid_reason=e.code)
        return self.verify(payload, requirements)

    # ========================================================================
    # Settle
    # ========================================================================

    def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        proof: TransferProof | None = None,
        payment_id: str | None = None,
    ) -> SettleResponse:
        """Settle a payment.

        With ``payment_id`` the call re-drives a payment that is already
        recorded: the authorization is re-verified against the stored
        requirement, the transfer is re-confirmed and the payment is marked
        settled.

        Raises:
            PaymentAbortedError: If a before hook aborts.
        """
        context = SettleContext(payment_payload=payload, requirements=requirements)

        for hook in self._before_settle_hooks:
            result = hook(context)
            if isinstance(result, AbortResult):
                raise PaymentAbortedError(result.reason)

        try:
            if payment_id:
                settle_result = self._settler.recheck_settlement(payment_id, payload, requirements)
            else:
                settle_result = self._settler.settle(payload, requirements, proof)
        except Exception as e:
            failure_context = SettleFailureContext(
                payment_payload=payload, requirements=requirements, error=e
            )
            for hook in self._on_settle_failure_hooks:
                result = hook(failure_context)
                if isinstance(result, RecoveredSettleResult):
                    return result.result
            raise

        if not settle_result.success:
            failure_context = SettleFailureContext(
                payment_payload=payload,
                requirements=requirements,
                error=Exception(settle_result.error or "Settlement failed"),
            )
            for hook in self._on_settle_failure_hooks:
                result = hook(failure_context)
                if isinstance(result, RecoveredSettleResult):
                    settle_result = result.result
                    break
            else:
                return settle_result

        result_context = SettleResultContext(
            payment_payload=payload, requirements=requirements, result=settle_result
        )
        for hook in self._after_settle_hooks:
            hook(result_context)
        return settle_result

    def settle_header(
        self,
        payment_header: str,
        requirements: PaymentRequirements,
        payment_id: str | None = None,
    ) -> SettleResponse:
        try:
            payload = decode_payment(payment_header)
        except InvalidEncodingError as e:
            return SettleResponse(
                success=False,
                error=e.code,
                network_id=requirements.network,
                timestamp=int(time.time()),
            )
        return self.settle(payload, requirements, payment_id=payment_id)

    def complete_settlement(self, payment_id: str) -> SettleResponse:
        return self._settler.complete_settlement(payment_id)

    # ========================================================================
    # Status
    # ========================================================================

    def get_status(self, payment_id: str) -> PaymentStatus:
        """Raises PaymentNotFoundError for unknown ids."""
        return self._status.get_status(payment_id)


# ============================================================================
# Factory
# ============================================================================


def create_facilitator(
    config: FacilitatorConfig,
    registry: PaymentRegistry | None = None,
    *,
    token_registry: TokenRegistry | None = None,
    origin_resolver: OriginResolver | None = None,
    executor: TransferExecutor | None = None,
    confirmer: TransferConfirmer | None = None,
    clock: Callable[[], float] = time.time,
) -> x402Facilitator:
    """Wire the pipelines from a ``FacilitatorConfig``.

    Without a registry an in-process one is created with the configured
    admin, and the facilitator account is granted the facilitator role.
    """
    if registry is None:
        registry = InMemoryPaymentRegistry(config.registry_admin, clock=clock)
        registry.grant_facilitator(config.registry_admin, config.facilitator_address)

    if confirmer is None:
        confirmer = TransferConfirmer.from_rpc_urls(
            config.rpc_urls,
            timeout=config.rpc_timeout_seconds,
            max_retries=config.rpc_max_retries,
            backoff_seconds=config.rpc_backoff_seconds,
        )

    verifier = PaymentVerifier(
        token_registry or StaticTokenRegistry(config.supported_tokens),
        registry,
        clock=clock,
        estimated_gas=config.estimated_settlement_gas,
    )
    settler = PaymentSettler(
        verifier,
        registry,
        config.facilitator_address,
        confirmer=confirmer,
        origin_resolver=origin_resolver,
        executor=executor,
        home_network=config.home_network,
        best_effort_confirmation=config.best_effort_confirmation,
        confirm_home_transfers=config.confirm_home_transfers,
        x402_version=config.x402_version,
        clock=clock,
    )
    logger.info(
        "Facilitator %s ready on %s (best_effort_confirmation=%s)",
        config.facilitator_address,
        config.home_network,
        config.best_effort_confirmation,
    )
    return x402Facilitator(
        verifier,
        settler,
        StatusService(registry, clock=clock),
        x402_version=config.x402_version,
    )
