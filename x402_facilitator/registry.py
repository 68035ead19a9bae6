"""Payment registry: merchant requirements, payment records and roles.

The registry is a ledger with a small state machine per payment::

    Unrecorded --record_payment--> Recorded --mark_payment_settled--> Settled

Nothing leaves ``Settled``. Requirements are upserted per (merchant,
resource). Writes are gated by roles: resource owners manage their own
requirements, facilitators record and settle payments for any merchant,
and the admin grants both roles.

``PaymentRegistry`` is the surface the pipelines depend on;
``InMemoryPaymentRegistry`` implements it in-process with the same
invariants a deployed registry contract enforces.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol

from eth_utils import keccak, to_bytes

from .errors import (
    AccessDeniedError,
    AlreadyRecordedError,
    AlreadySettledError,
    EmptyResourceError,
    InsufficientAmountError,
    InvalidAmountError,
    InvalidRecipientError,
    NonceAlreadyUsedError,
    PaymentNotFoundError,
    RequirementNotActiveError,
    RequirementNotFoundError,
)
from .mechanisms.evm.utils import normalize_address
from .origin import attribute_origin
from .schemas import (
    ZERO_ADDRESS,
    OriginInfo,
    PaymentRecord,
    PaymentRequirements,
    RegisteredRequirement,
)

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    RESOURCE_OWNER = "resource_owner"
    FACILITATOR = "facilitator"


def compute_requirement_id(merchant: str, resource: str) -> str:
    return "0x" + keccak(to_bytes(hexstr=merchant) + resource.encode("utf-8")).hex()


def compute_payment_id(merchant: str, resource: str, tx_hash: str) -> str:
    """Payment id keyed by the proof of transfer.

    Retrying with the same proof always yields the same id.
    """
    return "0x" + keccak(
        to_bytes(hexstr=merchant) + resource.encode("utf-8") + to_bytes(hexstr=tx_hash)
    ).hex()


def validate_requirements(requirements: PaymentRequirements) -> None:
    """Enforce requirement invariants.

    Raises:
        InvalidAmountError: If ``max_amount_required`` is not positive.
        InvalidRecipientError: If ``pay_to`` is malformed or the zero address.
        EmptyResourceError: If ``resource`` is blank.
    """
    if requirements.amount <= 0:
        raise InvalidAmountError("maxAmountRequired must be greater than zero")
    try:
        pay_to = normalize_address(requirements.pay_to)
    except ValueError as e:
        raise InvalidRecipientError(f"payTo is not a valid address: {requirements.pay_to}") from e
    if pay_to == ZERO_ADDRESS:
        raise InvalidRecipientError("payTo must not be the zero address")
    if not requirements.resource.strip():
        raise EmptyResourceError("resource must not be empty")


class PaymentRegistry(Protocol):
    """Registry surface consumed by the settlement and status pipelines."""

    def create_payment_requirement(
        self, caller: str, requirements: PaymentRequirements
    ) -> RegisteredRequirement:
        ...

    def get_payment_requirement(self, merchant: str, resource: str) -> RegisteredRequirement:
        ...

    def get_requirement_by_id(self, requirement_id: str) -> RegisteredRequirement:
        ...

    def deactivate_payment_requirement(self, caller: str, resource: str) -> RegisteredRequirement:
        ...

    def get_merchant_requirements(self, merchant: str) -> list[RegisteredRequirement]:
        ...

    def record_payment(
        self,
        caller: str,
        merchant: str,
        resource: str,
        payer: str,
        amount: int,
        tx_hash: str,
        *,
        origin: Optional[OriginInfo] = None,
        nonce: Optional[str] = None,
        asset: Optional[str] = None,
        tx_network: Optional[str] = None,
    ) -> str:
        ...

    def mark_payment_settled(self, caller: str, payment_id: str, settlement_ref: str) -> str:
        ...

    def get_payment_record(self, payment_id: str) -> PaymentRecord:
        ...

    def get_merchant_payments(self, merchant: str) -> list[str]:
        ...

    def is_nonce_used(self, payer: str, asset: str, nonce: str) -> bool:
        ...


class InMemoryPaymentRegistry:
    """Thread-safe in-process payment registry.

    Only the admin role is granted at construction; resource owners and
    facilitators are granted explicitly.
    """

    def __init__(self, admin: str, *, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._roles: dict[Role, set[str]] = {role: set() for role in Role}
        self._roles[Role.ADMIN].add(normalize_address(admin))

        self._requirements: dict[str, RegisteredRequirement] = {}
        self._merchant_requirements: dict[str, list[str]] = {}
        self._payments: dict[str, PaymentRecord] = {}
        self._merchant_payments: dict[str, list[str]] = {}
        self._proofs: dict[str, str] = {}
        self._used_nonces: set[tuple[str, str, str]] = set()

    def _now(self) -> int:
        return int(self._clock())

    # ========================================================================
    # Roles
    # ========================================================================

    def has_role(self, role: Role, account: str) -> bool:
        with self._lock:
            return normalize_address(account) in self._roles[role]

    def _require_role(self, role: Role, caller: str) -> str:
        caller = normalize_address(caller)
        if caller not in self._roles[role]:
            raise AccessDeniedError(caller, role.value)
        return caller

    def _grant(self, caller: str, role: Role, account: str) -> None:
        with self._lock:
            self._require_role(Role.ADMIN, caller)
            account = normalize_address(account)
            self._roles[role].add(account)
        logger.info("RoleGranted role=%s account=%s", role.value, account)

    def _revoke(self, caller: str, role: Role, account: str) -> None:
        with self._lock:
            self._require_role(Role.ADMIN, caller)
            account = normalize_address(account)
            self._roles[role].discard(account)
        logger.info("RoleRevoked role=%s account=%s", role.value, account)

    def register_resource_owner(self, caller: str, account: str) -> None:
        self._grant(caller, Role.RESOURCE_OWNER, account)

    def revoke_resource_owner(self, caller: str, account: str) -> None:
        self._revoke(caller, Role.RESOURCE_OWNER, account)

    def grant_facilitator(self, caller: str, account: str) -> None:
        self._grant(caller, Role.FACILITATOR, account)

    def revoke_facilitator(self, caller: str, account: str) -> None:
        self._revoke(caller, Role.FACILITATOR, account)

    # ========================================================================
    # Requirements
    # ========================================================================

    def create_payment_requirement(
        self, caller: str, requirements: PaymentRequirements
    ) -> RegisteredRequirement:
        """Create or overwrite the caller's requirement for ``requirements.resource``."""
        validate_requirements(requirements)
        with self._lock:
            merchant = self._require_role(Role.RESOURCE_OWNER, caller)
            requirement_id = compute_requirement_id(merchant, requirements.resource)
            now = self._now()

            existing = self._requirements.get(requirement_id)
            registered = RegisteredRequirement(
                **requirements.model_dump(),
                merchant=merchant,
                requirement_id=requirement_id,
                is_active=True,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._requirements[requirement_id] = registered
            if existing is None:
                self._merchant_requirements.setdefault(merchant, []).append(requirement_id)

        logger.info(
            "RequirementCreated merchant=%s resource=%s amount=%s",
            merchant,
            requirements.resource,
            requirements.max_amount_required,
        )
        return registered

    def deactivate_payment_requirement(self, caller: str, resource: str) -> RegisteredRequirement:
        with self._lock:
            merchant = self._require_role(Role.RESOURCE_OWNER, caller)
            current = self.get_payment_requirement(merchant, resource)
            updated = current.model_copy(update={"is_active": False, "updated_at": self._now()})
            self._requirements[current.requirement_id] = updated
        logger.info("RequirementDeactivated merchant=%s resource=%s", merchant, resource)
        return updated

    def get_payment_requirement(self, merchant: str, resource: str) -> RegisteredRequirement:
        requirement_id = compute_requirement_id(normalize_address(merchant), resource)
        with self._lock:
            try:
                return self._requirements[requirement_id]
            except KeyError:
                raise RequirementNotFoundError(
                    f"No requirement for {merchant} / {resource}"
                ) from None

    def get_requirement_by_id(self, requirement_id: str) -> RegisteredRequirement:
        with self._lock:
            try:
                return self._requirements[requirement_id]
            except KeyError:
                raise RequirementNotFoundError(f"No requirement with id {requirement_id}") from None

    def get_merchant_requirements(self, merchant: str) -> list[RegisteredRequirement]:
        with self._lock:
            ids = self._merchant_requirements.get(normalize_address(merchant), [])
            return [self._requirements[i] for i in ids]

    # ========================================================================
    # Payments
    # ========================================================================

    def record_payment(
        self,
        caller: str,
        merchant: str,
        resource: str,
        payer: str,
        amount: int,
        tx_hash: str,
        *,
        origin: Optional[OriginInfo] = None,
        nonce: Optional[str] = None,
        asset: Optional[str] = None,
        tx_network: Optional[str] = None,
    ) -> str:
        """Record a payment against ``merchant``'s requirement for ``resource``.

        The check-and-insert runs under the registry lock, so concurrent
        submissions of the same proof produce exactly one record.

        Returns:
            The payment id.

        Raises:
            AccessDeniedError: Caller is not a facilitator.
            RequirementNotFoundError: No requirement for (merchant, resource).
            RequirementNotActiveError: The requirement has been deactivated.
            InsufficientAmountError: ``amount`` is below the requirement.
            AlreadyRecordedError: This proof of transfer was already recorded.
            NonceAlreadyUsedError: The authorization nonce was already consumed.
        """
        merchant = normalize_address(merchant)
        payer = normalize_address(payer)
        proof_key = tx_hash.lower()

        with self._lock:
            self._require_role(Role.FACILITATOR, caller)

            requirement = self.get_payment_requirement(merchant, resource)
            if not requirement.is_active:
                raise RequirementNotActiveError(f"Requirement for {resource} is not active")
            if amount < requirement.amount:
                raise InsufficientAmountError(
                    f"Insufficient amount. Required: {requirement.amount}, Provided: {amount}"
                )

            if proof_key in self._proofs:
                raise AlreadyRecordedError(self._proofs[proof_key])
            payment_id = compute_payment_id(merchant, resource, tx_hash)

            nonce_key = None
            if nonce is not None:
                nonce_key = (payer.lower(), (asset or requirement.asset).lower(), nonce.lower())
                if nonce_key in self._used_nonces:
                    raise NonceAlreadyUsedError(f"Nonce {nonce} already used by {payer}")

            origin_chain, origin_address, is_remote = attribute_origin(payer, origin)
            record = PaymentRecord(
                payment_id=payment_id,
                requirement_id=requirement.requirement_id,
                merchant=merchant,
                resource=resource,
                payer=payer,
                origin_chain=origin_chain,
                origin_address=origin_address,
                is_origin_remote=is_remote,
                amount=str(amount),
                timestamp=self._now(),
                tx_hash=tx_hash,
                tx_network=tx_network,
                nonce=nonce,
            )
            self._payments[payment_id] = record
            self._proofs[proof_key] = payment_id
            self._merchant_payments.setdefault(merchant, []).append(payment_id)
            if nonce_key is not None:
                self._used_nonces.add(nonce_key)

        logger.info(
            "PaymentRecorded payment_id=%s merchant=%s payer=%s amount=%s origin=%s",
            payment_id,
            merchant,
            payer,
            amount,
            origin_chain,
        )
        return payment_id

    def mark_payment_settled(self, caller: str, payment_id: str, settlement_ref: str) -> str:
        """Flip a recorded payment to settled.

        Returns:
            Reference of the settlement write.

        Raises:
            AccessDeniedError: Caller is not a facilitator.
            PaymentNotFoundError: No record with this id.
            AlreadySettledError: The record is already settled.
        """
        with self._lock:
            self._require_role(Role.FACILITATOR, caller)
            record = self._payments.get(payment_id)
            if record is None:
                raise PaymentNotFoundError(payment_id)
            if record.settled:
                raise AlreadySettledError(payment_id)

            self._payments[payment_id] = record.model_copy(
                update={
                    "settled": True,
                    "settlement_ref": settlement_ref,
                    "settled_at": self._now(),
                }
            )
            settlement_tx = "0x" + keccak(
                to_bytes(hexstr=payment_id) + settlement_ref.encode("utf-8")
            ).hex()

        logger.info("PaymentSettled payment_id=%s ref=%s", payment_id, settlement_ref)
        return settlement_tx

    def get_payment_record(self, payment_id: str) -> PaymentRecord:
        with self._lock:
            record = self._payments.get(payment_id)
        if record is None:
            raise PaymentNotFoundError(payment_id)
        return record

    def get_merchant_payments(self, merchant: str) -> list[str]:
        with self._lock:
            return list(self._merchant_payments.get(normalize_address(merchant), []))

    def is_nonce_used(self, payer: str, asset: str, nonce: str) -> bool:
        with self._lock:
            return (payer.lower(), asset.lower(), nonce.lower()) in self._used_nonces
