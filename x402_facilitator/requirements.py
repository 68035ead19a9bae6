"""Requirement model operations and resource pricing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import (
    EmptyResourceError,
    InvalidAmountError,
    InvalidRecipientError,
    RequirementNotFoundError,
)
from .registry import PaymentRegistry, validate_requirements
from .schemas import NATIVE_ASSET, SCHEME_EXACT, PaymentRequirements, RegisteredRequirement


@dataclass(frozen=True)
class ResourcePrice:
    """Price entry for one guarded resource."""

    amount: int | str
    description: str = ""
    asset: Optional[str] = None
    network: Optional[str] = None
    mime_type: Optional[str] = None
    timeout_seconds: Optional[int] = None


@dataclass
class PricingConfig:
    """Pricing table owned by whoever builds the resource server.

    Passed explicitly to the code that issues challenges; there is no
    process-wide pricing state.
    """

    pay_to: str
    network: str = "push-chain"
    asset: str = NATIVE_ASSET
    mime_type: str = "application/json"
    timeout_seconds: int = 3600
    prices: dict[str, ResourcePrice] = field(default_factory=dict)

    def price_for(self, resource: str) -> Optional[ResourcePrice]:
        return self.prices.get(resource)


def build_requirements(
    config: PricingConfig,
    resource: str,
    price: ResourcePrice | None = None,
    extra: dict[str, Any] | None = None,
) -> PaymentRequirements:
    """Turn a pricing entry into validated ``PaymentRequirements``.

    Raises:
        RequirementNotFoundError: If ``resource`` has no price and none is given.
        InvalidRequirementError: If the result violates requirement invariants.
    """
    price = price or config.price_for(resource)
    if price is None:
        raise RequirementNotFoundError(f"No price configured for {resource}")

    requirements = PaymentRequirements(
        scheme=SCHEME_EXACT,
        network=price.network or config.network,
        max_amount_required=str(price.amount),
        resource=resource,
        description=price.description,
        mime_type=price.mime_type or config.mime_type,
        pay_to=config.pay_to,
        max_timeout_seconds=price.timeout_seconds or config.timeout_seconds,
        asset=price.asset or config.asset,
        extra=extra,
    )
    validate_requirements(requirements)
    return requirements


class RequirementService:
    """Creates and reads merchant requirements through the registry."""

    def __init__(self, registry: PaymentRegistry) -> None:
        self._registry = registry

    def create_requirement(self, owner: str, **fields: Any) -> RegisteredRequirement:
        """Validate and upsert ``owner``'s requirement.

        Raises:
            InvalidAmountError, InvalidRecipientError, EmptyResourceError:
                On invariant violations.
            AccessDeniedError: If ``owner`` is not a registered resource owner.
        """
        fields.setdefault("scheme", SCHEME_EXACT)
        try:
            amount = int(fields.get("max_amount_required"))
        except (TypeError, ValueError):
            raise InvalidAmountError("maxAmountRequired must be an integer") from None
        if amount <= 0:
            raise InvalidAmountError("maxAmountRequired must be greater than zero")
        if not fields.get("pay_to"):
            raise InvalidRecipientError("payTo is required")
        if not fields.get("resource"):
            raise EmptyResourceError("resource must not be empty")

        requirements = PaymentRequirements(**fields)
        validate_requirements(requirements)
        return self._registry.create_payment_requirement(owner, requirements)

    def get_requirement(self, owner: str, resource: str) -> RegisteredRequirement:
        return self._registry.get_payment_requirement(owner, resource)

    def deactivate_requirement(self, owner: str, resource: str) -> RegisteredRequirement:
        return self._registry.deactivate_payment_requirement(owner, resource)

    def list_requirements(self, owner: str) -> list[RegisteredRequirement]:
        return self._registry.get_merchant_requirements(owner)
