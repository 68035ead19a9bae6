"""Shared fixtures: fixed accounts, a pinned clock and signed payments."""

import pytest
from eth_account import Account

from x402_facilitator.mechanisms.evm.signature import sign_authorization
from x402_facilitator.origin import StaticOriginResolver
from x402_facilitator.registry import InMemoryPaymentRegistry
from x402_facilitator.schemas import (
    NATIVE_ASSET,
    Authorization,
    ExactPaymentPayload,
    PaymentPayload,
    PaymentRequirements,
)
from x402_facilitator.settlement import PaymentSettler
from x402_facilitator.status import StatusService
from x402_facilitator.tokens import StaticTokenRegistry
from x402_facilitator.transfers import TransferConfirmer
from x402_facilitator.verification import PaymentVerifier

from .mocks import (
    ADMIN_KEY,
    AMOUNT,
    FACILITATOR_KEY,
    MERCHANT_KEY,
    NONCE,
    NOW,
    PAYER_KEY,
    RESOURCE,
    STRANGER_KEY,
    TX_HASH,
    FakeClock,
    FakeReceiptFetcher,
)

# ============================================================================
# Accounts
# ============================================================================


@pytest.fixture
def admin():
    return Account.from_key(ADMIN_KEY).address


@pytest.fixture
def payer_account():
    return Account.from_key(PAYER_KEY)


@pytest.fixture
def stranger_account():
    return Account.from_key(STRANGER_KEY)


@pytest.fixture
def merchant():
    return Account.from_key(MERCHANT_KEY).address


@pytest.fixture
def facilitator_address():
    return Account.from_key(FACILITATOR_KEY).address


# ============================================================================
# Protocol objects
# ============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def requirements(merchant):
    return PaymentRequirements(
        network="push-chain",
        max_amount_required=str(AMOUNT),
        resource=RESOURCE,
        description="Premium data",
        pay_to=merchant,
        max_timeout_seconds=3600,
        asset=NATIVE_ASSET,
    )


@pytest.fixture
def make_payment(payer_account, requirements):
    """Factory for signed payments; every field can be overridden."""

    def _make(
        reqs=None,
        account=None,
        signer=None,
        value=None,
        to=None,
        valid_after=NOW - 60,
        valid_before=NOW + 3600,
        nonce=NONCE,
        tx_hash=TX_HASH,
        tx_network=None,
        network=None,
        x402_version=1,
        scheme="exact",
    ):
        reqs = reqs or requirements
        account = account or payer_account
        authorization = Authorization(
            from_=account.address,
            to=to or reqs.pay_to,
            value=str(value if value is not None else reqs.amount),
            valid_after=str(valid_after),
            valid_before=str(valid_before),
            nonce=nonce,
        )
        signature = sign_authorization(signer or account, authorization, reqs, network or reqs.network)
        return PaymentPayload(
            x402_version=x402_version,
            scheme=scheme,
            network=network or reqs.network,
            payload=ExactPaymentPayload(
                signature=signature,
                authorization=authorization,
                tx_hash=tx_hash,
                tx_network=tx_network,
            ),
        )

    return _make


# ============================================================================
# Pipelines
# ============================================================================


@pytest.fixture
def registry(admin, merchant, facilitator_address, requirements, clock):
    registry = InMemoryPaymentRegistry(admin, clock=clock)
    registry.register_resource_owner(admin, merchant)
    registry.grant_facilitator(admin, facilitator_address)
    registry.create_payment_requirement(merchant, requirements)
    return registry


@pytest.fixture
def fetcher(payer_account, merchant):
    fetcher = FakeReceiptFetcher()
    fetcher.add(TX_HASH, payer_account.address, merchant, AMOUNT)
    return fetcher


@pytest.fixture
def confirmer(fetcher):
    return TransferConfirmer(
        {"push-chain": fetcher, "ethereum-sepolia": fetcher},
        max_retries=2,
        backoff_seconds=0.01,
        sleep=lambda _: None,
    )


@pytest.fixture
def origin_resolver():
    return StaticOriginResolver()


@pytest.fixture
def verifier(registry, clock):
    return PaymentVerifier(StaticTokenRegistry(), registry, clock=clock)


@pytest.fixture
def make_settler(verifier, registry, facilitator_address, confirmer, origin_resolver, clock):
    def _make(**kwargs):
        options = {
            "confirmer": confirmer,
            "origin_resolver": origin_resolver,
            "home_network": "push-chain",
            "clock": clock,
        }
        options.update(kwargs)
        return PaymentSettler(verifier, registry, facilitator_address, **options)

    return _make


@pytest.fixture
def settler(make_settler):
    return make_settler()


@pytest.fixture
def status_service(registry, clock):
    return StatusService(registry, clock=clock)
