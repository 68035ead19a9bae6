import pytest

from x402_facilitator.errors import UnsupportedNetworkError
from x402_facilitator.mechanisms.evm import (
    DOMAIN_NAME,
    build_domain,
    recover_signer,
    verify_signature,
)


class TestDomain:
    def test_default_domain(self, requirements):
        """The domain binds the chain id and the asset contract."""
        domain = build_domain(requirements, "push-chain")
        assert domain == {
            "name": DOMAIN_NAME,
            "version": "1",
            "chainId": 42101,
            "verifyingContract": requirements.asset,
        }

    def test_extra_overrides_name_and_version(self, requirements):
        """``extra`` may rename the domain but never change its chain."""
        custom = requirements.model_copy(update={"extra": {"name": "USDC", "version": "2"}})
        domain = build_domain(custom, "base-sepolia")
        assert domain["name"] == "USDC"
        assert domain["version"] == "2"
        assert domain["chainId"] == 84532

    def test_unknown_network_raises(self, requirements):
        """There is no fallback chain id."""
        with pytest.raises(UnsupportedNetworkError):
            build_domain(requirements, "tron")


class TestVerifySignature:
    def test_valid_signature(self, make_payment, requirements, payer_account):
        """A payload signed by ``from`` verifies and recovers to ``from``."""
        payload = make_payment()
        assert verify_signature(payload, requirements)
        recovered = recover_signer(
            payload.authorization, payload.payload.signature, requirements, payload.network
        )
        assert recovered == payer_account.address

    def test_wrong_signer(self, make_payment, requirements, stranger_account):
        """A signature by someone other than ``from`` is rejected."""
        payload = make_payment(signer=stranger_account)
        assert not verify_signature(payload, requirements)

    def test_tampered_value(self, make_payment, requirements):
        """Changing any signed field after signing breaks the signature."""
        payload = make_payment()
        tampered = payload.model_copy(
            update={
                "payload": payload.payload.model_copy(
                    update={
                        "authorization": payload.authorization.model_copy(update={"value": "1"})
                    }
                )
            }
        )
        assert not verify_signature(tampered, requirements)

    def test_signed_for_other_chain(self, make_payment, requirements):
        """A signature made for one chain does not verify on another."""
        payload = make_payment(network="base-sepolia")
        relabelled = payload.model_copy(update={"network": "push-chain"})
        assert not verify_signature(relabelled, requirements)

    def test_domain_name_mismatch(self, make_payment, requirements):
        """Signing and verifying domains must agree on name and version."""
        custom = requirements.model_copy(update={"extra": {"name": "Other"}})
        payload = make_payment(reqs=custom)
        assert verify_signature(payload, custom)
        assert not verify_signature(payload, requirements)

    def test_garbage_signature(self, make_payment, requirements):
        """Undecodable signatures are invalid, not errors."""
        payload = make_payment()
        broken = payload.model_copy(
            update={"payload": payload.payload.model_copy(update={"signature": "0xdeadbeef"})}
        )
        assert not verify_signature(broken, requirements)

    def test_unknown_network_propagates(self, make_payment, requirements):
        """An unknown network is reported as such rather than as a bad signature."""
        unknown = requirements.model_copy(update={"network": "unknown-chain"})
        with pytest.raises(UnsupportedNetworkError):
            verify_signature(make_payment(), unknown)

    def test_domain_follows_requirements(self, make_payment, requirements):
        """The payload's own network label does not pick the signing domain."""
        payload = make_payment(network="base-sepolia")
        assert not verify_signature(payload, requirements)
        assert verify_signature(payload, requirements.model_copy(update={"network": "base-sepolia"}))
