"""Projection of registry records into client-facing payment status."""

from __future__ import annotations

import time
from typing import Callable

from .registry import PaymentRegistry
from .schemas import PaymentRecord, PaymentStatus, PaymentStatusKind, RegisteredRequirement


def derive_status(record: PaymentRecord, requirement: RegisteredRequirement, now: int) -> PaymentStatusKind:
    if record.settled:
        return PaymentStatusKind.SETTLED
    if now > record.timestamp + requirement.max_timeout_seconds:
        return PaymentStatusKind.EXPIRED
    return PaymentStatusKind.SETTLING


class StatusService:
    """Read-only status lookups."""

    def __init__(self, registry: PaymentRegistry, *, clock: Callable[[], float] = time.time) -> None:
        self._registry = registry
        self._clock = clock

    def get_status(self, payment_id: str) -> PaymentStatus:
        """Return the status of a recorded payment.

        Raises:
            PaymentNotFoundError: If no payment has this id.
        """
        record = self._registry.get_payment_record(payment_id)
        requirement = self._registry.get_requirement_by_id(record.requirement_id)

        return PaymentStatus(
            payment_id=record.payment_id,
            status=derive_status(record, requirement, int(self._clock())),
            amount=record.amount,
            asset=requirement.asset,
            payer=record.payer,
            payee=requirement.pay_to,
            network=requirement.network,
            resource=record.resource,
            created_at=record.timestamp,
            expires_at=record.timestamp + requirement.max_timeout_seconds,
            settled_at=record.settled_at,
            tx_hash=record.tx_hash,
            settlement_ref=record.settlement_ref,
            origin_chain=record.origin_chain,
            origin_address=record.origin_address,
            is_origin_remote=record.is_origin_remote,
        )
