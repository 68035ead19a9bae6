"""Settlement pipeline: verify, prove the transfer, record, mark settled.

Errors raised by collaborators are converted into ``SettleResponse``
failures here. Anything that is not an ``X402Error`` propagates.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .errors import (
    MissingTransferProofError,
    TransferMismatchError,
    TransientError,
    X402Error,
)
from .mechanisms.evm.utils import addresses_equal
from .networks import same_network
from .origin import NativeOriginResolver, OriginResolver
from .registry import PaymentRegistry
from .schemas import (
    X402_VERSION,
    PaymentPayload,
    PaymentRecord,
    PaymentRequirements,
    SettleResponse,
)
from .transfers import (
    TransferConfirmer,
    TransferExecutor,
    TransferProof,
    proof_from_payload,
)
from .verification import PaymentVerifier

logger = logging.getLogger(__name__)


class PaymentSettler:
    """Settles verified payments against the payment registry.

    Args:
        verifier: Re-runs verification before anything is written.
        registry: Where payments are recorded and marked settled.
        facilitator_address: Account that holds the facilitator role.
        confirmer: Confirms transfer proofs over RPC.
        origin_resolver: Attributes cross-chain proxy payers to their origin.
        executor: Optional executor that performs the transfer itself.
        home_network: Network the registry lives on.
        best_effort_confirmation: Record unconfirmed payments as pending
            when the RPC node cannot answer, instead of failing.
        confirm_home_transfers: Also confirm client-supplied proofs on the
            home network.
        x402_version: Protocol version payments must carry.
    """

    def __init__(
        self,
        verifier: PaymentVerifier,
        registry: PaymentRegistry,
        facilitator_address: str,
        *,
        confirmer: TransferConfirmer | None = None,
        origin_resolver: OriginResolver | None = None,
        executor: TransferExecutor | None = None,
        home_network: str = "push-chain",
        best_effort_confirmation: bool = False,
        confirm_home_transfers: bool = True,
        x402_version: int = X402_VERSION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._verifier = verifier
        self._registry = registry
        self._facilitator_address = facilitator_address
        self._confirmer = confirmer or TransferConfirmer()
        self._origin_resolver = origin_resolver or NativeOriginResolver()
        self._executor = executor
        self._home_network = home_network
        self._best_effort = best_effort_confirmation
        self._confirm_home = confirm_home_transfers
        self._x402_version = x402_version
        self._clock = clock

    @property
    def facilitator_address(self) -> str:
        return self._facilitator_address

    # ========================================================================
    # Settle
    # ========================================================================

    def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        proof: TransferProof | None = None,
    ) -> SettleResponse:
        """Settle a payment.

        Returns:
            SettleResponse. ``pending=True`` means the payment was recorded
            but its transfer could not be confirmed yet.
        """
        verdict = self._verifier.verify(payload, requirements, self._x402_version)
        payer = payload.payer
        if not verdict.is_valid:
            return self._failure(verdict.invalid_reason, requirements, payer)

        authorization = payload.authorization
        payment_id: Optional[str] = None
        try:
            proof = self._obtain_proof(payload, requirements, proof)

            pending = False
            if self._needs_confirmation(proof):
                try:
                    self._confirmer.confirm(proof, authorization, requirements)
                except TransientError:
                    if not self._best_effort:
                        raise
                    logger.warning(
                        "Recording %s as pending, transfer %s not yet confirmed",
                        payer,
                        proof.tx_hash,
                    )
                    pending = True

            origin = self._origin_resolver.resolve_origin(payer)
            payment_id = self._registry.record_payment(
                self._facilitator_address,
                requirements.pay_to,
                requirements.resource,
                payer,
                authorization.amount,
                proof.tx_hash,
                origin=origin,
                nonce=authorization.nonce,
                asset=requirements.asset,
                tx_network=proof.network,
            )
            if pending:
                return SettleResponse(
                    success=True,
                    network_id=requirements.network,
                    timestamp=self._now(),
                    registry_tx_hash=payment_id,
                    payment_id=payment_id,
                    payer=payer,
                    pending=True,
                )

            settlement_tx = self._registry.mark_payment_settled(
                self._facilitator_address, payment_id, proof.tx_hash
            )
        except X402Error as e:
            return self._failure(e.code, requirements, payer, payment_id, e.message)

        logger.info("Settled payment %s from %s", payment_id, payer)
        return SettleResponse(
            success=True,
            tx_hash=settlement_tx,
            network_id=requirements.network,
            timestamp=self._now(),
            registry_tx_hash=payment_id,
            payment_id=payment_id,
            payer=payer,
        )

    def complete_settlement(self, payment_id: str) -> SettleResponse:
        """Mark an already recorded payment as settled.

        Operator override used to re-drive a settlement whose final write
        failed after the payment was recorded. The transfer is not confirmed
        again here; use ``recheck_settlement`` for pending payments whose
        transfer has not been proven.
        """
        try:
            record = self._registry.get_payment_record(payment_id)
            requirement = self._registry.get_requirement_by_id(record.requirement_id)
            settlement_tx = self._registry.mark_payment_settled(
                self._facilitator_address, payment_id, record.tx_hash
            )
        except X402Error as e:
            logger.warning("Could not complete settlement %s: %s", payment_id, e.code)
            return SettleResponse(
                success=False,
                error=e.code,
                timestamp=self._now(),
                payment_id=payment_id,
            )

        return SettleResponse(
            success=True,
            tx_hash=settlement_tx,
            network_id=requirement.network,
            timestamp=self._now(),
            registry_tx_hash=payment_id,
            payment_id=payment_id,
            payer=record.payer,
        )

    def recheck_settlement(
        self,
        payment_id: str,
        payload: PaymentPayload,
        requirements: PaymentRequirements | None = None,
    ) -> SettleResponse:
        """Confirm the transfer of a pending payment and mark it settled.

        Everything checked comes from the registry: the stored requirement,
        the recorded payer, nonce and proof network. ``payload`` must be the
        authorization that was recorded, re-verified as of the time it was
        recorded. ``requirements`` is only used to label a failure that
        happens before the stored requirement is loaded.

        Confirmation is fail-closed here: a transient RPC failure leaves the
        payment pending and reports ``rpc_unavailable``.
        """
        payer = payload.payer
        label = requirements
        try:
            record = self._registry.get_payment_record(payment_id)
            registered = self._registry.get_requirement_by_id(
                record.requirement_id
            ).to_requirements()
            label = registered

            verdict = self._verifier.verify(
                payload,
                registered,
                self._x402_version,
                at=record.timestamp,
                check_nonce=False,
            )
            if not verdict.is_valid:
                return self._failure(verdict.invalid_reason, registered, payer, payment_id)
            self._match_record(record, payload)

            proof = TransferProof(
                tx_hash=record.tx_hash, network=record.tx_network or registered.network
            )
            if self._needs_confirmation(proof):
                self._confirmer.confirm(proof, payload.authorization, registered)
            settlement_tx = self._registry.mark_payment_settled(
                self._facilitator_address, payment_id, record.tx_hash
            )
        except X402Error as e:
            if label is None:
                logger.warning("Recheck of %s failed: %s", payment_id, e.code)
                return SettleResponse(
                    success=False,
                    error=e.code,
                    timestamp=self._now(),
                    payment_id=payment_id,
                    payer=payer,
                )
            return self._failure(e.code, label, payer, payment_id, e.message)

        logger.info("Pending payment %s confirmed and settled", payment_id)
        return SettleResponse(
            success=True,
            tx_hash=settlement_tx,
            network_id=registered.network,
            timestamp=self._now(),
            registry_tx_hash=payment_id,
            payment_id=payment_id,
            payer=record.payer,
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _match_record(self, record: PaymentRecord, payload: PaymentPayload) -> None:
        """Tie ``payload`` to the authorization consumed when ``record`` was written."""
        authorization = payload.authorization
        if not addresses_equal(authorization.from_, record.payer):
            raise TransferMismatchError(
                f"Authorization is from {authorization.from_}, payment was made by {record.payer}"
            )
        if authorization.amount != int(record.amount):
            raise TransferMismatchError(
                f"Authorization covers {authorization.amount}, recorded {record.amount}"
            )
        if record.nonce is None or authorization.nonce.lower() != record.nonce.lower():
            raise TransferMismatchError("Authorization nonce does not match the recorded payment")

    def _obtain_proof(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        proof: TransferProof | None,
    ) -> TransferProof:
        if proof is not None:
            return proof
        proof = proof_from_payload(payload)
        if proof is not None:
            return proof
        if self._executor is not None:
            executed = self._executor.execute(payload, requirements)
            return TransferProof(tx_hash=executed.tx_hash, network=executed.network, trusted=True)
        raise MissingTransferProofError("Payment carries no proof of transfer")

    def _needs_confirmation(self, proof: TransferProof) -> bool:
        if proof.trusted:
            return False
        if not same_network(proof.network, self._home_network):
            return True
        return self._confirm_home

    def _failure(
        self,
        reason: str | None,
        requirements: PaymentRequirements,
        payer: str | None,
        payment_id: str | None = None,
        detail: str | None = None,
    ) -> SettleResponse:
        logger.warning(
            "Settlement for %s failed: %s%s",
            requirements.resource,
            reason,
            f" ({detail})" if detail and detail != reason else "",
        )
        return SettleResponse(
            success=False,
            error=reason,
            network_id=requirements.network,
            timestamp=self._now(),
            payment_id=payment_id,
            payer=payer,
        )

    def _now(self) -> int:
        return int(self._clock())
