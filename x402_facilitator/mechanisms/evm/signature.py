"""EIP-712 typed-data construction, signing and signer recovery for authorizations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data

from ...networks import get_chain_id
from ...schemas import Authorization, PaymentPayload, PaymentRequirements
from .constants import AUTHORIZATION_TYPES, DOMAIN_NAME, DOMAIN_VERSION
from .utils import addresses_equal, hex_to_bytes

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

logger = logging.getLogger(__name__)


def build_domain(requirements: PaymentRequirements, network: str) -> dict[str, Any]:
    """Build the EIP-712 domain for a network and requirement.

    ``requirements.extra`` may override ``name``/``version``; chain id and
    verifying contract always come from the network table and the asset.

    Raises:
        UnsupportedNetworkError: If the network has no known chain id.
    """
    extra = requirements.extra or {}
    return {
        "name": extra.get("name", DOMAIN_NAME),
        "version": extra.get("version", DOMAIN_VERSION),
        "chainId": get_chain_id(network),
        "verifyingContract": requirements.asset,
    }


def build_message(authorization: Authorization) -> dict[str, Any]:
    return {
        "from": authorization.from_,
        "to": authorization.to,
        "value": int(authorization.value),
        "validAfter": int(authorization.valid_after),
        "validBefore": int(authorization.valid_before),
        "nonce": hex_to_bytes(authorization.nonce),
    }


def build_typed_data(
    authorization: Authorization,
    requirements: PaymentRequirements,
    network: str,
) -> SignableMessage:
    """Encode the authorization as an EIP-712 signable message."""
    return encode_typed_data(
        domain_data=build_domain(requirements, network),
        message_types=AUTHORIZATION_TYPES,
        message_data=build_message(authorization),
    )


def sign_authorization(
    account: LocalAccount,
    authorization: Authorization,
    requirements: PaymentRequirements,
    network: str | None = None,
) -> str:
    """Sign an authorization with an eth_account LocalAccount.

    Returns:
        0x-prefixed hex signature.
    """
    signable = build_typed_data(authorization, requirements, network or requirements.network)
    signed = account.sign_message(signable)
    signature = signed.signature.hex()
    if not signature.startswith("0x"):
        signature = f"0x{signature}"
    return signature


def recover_signer(
    authorization: Authorization,
    signature: str,
    requirements: PaymentRequirements,
    network: str,
) -> str:
    """Recover the address that produced ``signature`` over the authorization.

    Raises:
        UnsupportedNetworkError: If the network has no known chain id.
        ValueError: If the signature is malformed.
    """
    signable = build_typed_data(authorization, requirements, network)
    return Account.recover_message(signable, signature=hex_to_bytes(signature))


def verify_signature(payload: PaymentPayload, requirements: PaymentRequirements) -> bool:
    """Check that ``payload.signature`` was produced by ``authorization.from``.

    The EIP-712 domain is built from ``requirements.network``, so a payment
    signed for any other chain does not verify. A signature that cannot be
    decoded or recovered is reported as invalid.
    Network resolution failures propagate so the caller can report the
    network, not the signature, as the problem.
    """
    # Resolve first so an unknown network is never mistaken for a bad signature.
    get_chain_id(requirements.network)

    authorization = payload.payload.authorization
    try:
        recovered = recover_signer(
            authorization, payload.payload.signature, requirements, requirements.network
        )
    except Exception as e:
        logger.debug("Signature recovery failed for %s: %s", authorization.from_, e)
        return False

    return addresses_equal(recovered, authorization.from_)
