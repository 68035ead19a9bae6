import pytest

from x402_facilitator.encoding import encode_payment
from x402_facilitator.errors import (
    ERR_EXPIRED,
    ERR_INSUFFICIENT_AMOUNT,
    ERR_INVALID_ENCODING,
    ERR_INVALID_SIGNATURE,
    ERR_NETWORK_MISMATCH,
    ERR_NONCE_ALREADY_USED,
    ERR_NOT_YET_VALID,
    ERR_RECIPIENT_MISMATCH,
    ERR_UNSUPPORTED_NETWORK,
    ERR_UNSUPPORTED_SCHEME,
    ERR_UNSUPPORTED_TOKEN,
    ERR_VERSION_MISMATCH,
)
from x402_facilitator.tokens import StaticTokenRegistry
from x402_facilitator.verification import PaymentVerifier

from ..mocks import AMOUNT, NOW

TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class TestVerifyHappyPath:
    def test_valid_payment(self, verifier, make_payment, requirements, payer_account):
        """A well-formed, correctly signed payment verifies."""
        result = verifier.verify(make_payment(), requirements)

        assert result.is_valid
        assert result.invalid_reason is None
        assert result.payer == payer_account.address
        assert result.expires_at == NOW + 3600
        assert result.estimated_gas == "300000"

    def test_overpayment_is_valid(self, verifier, make_payment, requirements):
        """Paying more than required is accepted."""
        assert verifier.verify(make_payment(value=AMOUNT + 1), requirements).is_valid

    def test_idempotent_and_read_only(self, verifier, make_payment, requirements, registry, merchant):
        """Verifying twice gives the same answer and writes nothing."""
        payload = make_payment()
        first = verifier.verify(payload, requirements)
        second = verifier.verify(payload, requirements)

        assert first == second
        assert registry.get_merchant_payments(merchant) == []
        assert not registry.is_nonce_used(
            payload.payer, requirements.asset, payload.authorization.nonce
        )

    def test_supported_token(self, registry, clock, make_payment, requirements):
        """Tokens in the token registry are accepted."""
        token_requirements = requirements.model_copy(update={"asset": TOKEN})
        verifier = PaymentVerifier(StaticTokenRegistry([TOKEN]), registry, clock=clock)
        result = verifier.verify(make_payment(reqs=token_requirements), token_requirements)
        assert result.is_valid


class TestVerifyRejections:
    def test_insufficient_amount(self, verifier, make_payment, requirements):
        """Authorizing less than required is rejected."""
        result = verifier.verify(make_payment(value=AMOUNT - 1), requirements)
        assert not result.is_valid
        assert result.invalid_reason == ERR_INSUFFICIENT_AMOUNT

    def test_version_mismatch(self, verifier, make_payment, requirements):
        """Only the configured protocol version is accepted."""
        result = verifier.verify(make_payment(x402_version=2), requirements)
        assert result.invalid_reason == ERR_VERSION_MISMATCH

    def test_unsupported_scheme(self, verifier, make_payment, requirements):
        """Only the exact scheme is implemented."""
        result = verifier.verify(make_payment(scheme="upto"), requirements)
        assert result.invalid_reason == ERR_UNSUPPORTED_SCHEME

    def test_unsupported_network(self, verifier, make_payment, requirements):
        """Unknown networks fail closed."""
        payload = make_payment().model_copy(update={"network": "solana-devnet"})
        result = verifier.verify(payload, requirements)
        assert result.invalid_reason == ERR_UNSUPPORTED_NETWORK

    def test_network_mismatch(self, verifier, make_payment, requirements):
        """A payment signed for a different chain than the one required is rejected."""
        payload = make_payment(network="base-sepolia")
        result = verifier.verify(payload, requirements)
        assert not result.is_valid
        assert result.invalid_reason == ERR_NETWORK_MISMATCH

    def test_unsupported_required_network(self, verifier, make_payment, requirements):
        """An unknown network on the requirement side also fails closed."""
        unknown = requirements.model_copy(update={"network": "unknown-chain"})
        result = verifier.verify(make_payment(), unknown)
        assert result.invalid_reason == ERR_UNSUPPORTED_NETWORK

    def test_invalid_signature(self, verifier, make_payment, requirements, stranger_account):
        """Signatures by anyone but ``from`` are rejected."""
        result = verifier.verify(make_payment(signer=stranger_account), requirements)
        assert result.invalid_reason == ERR_INVALID_SIGNATURE

    def test_recipient_mismatch(self, verifier, make_payment, requirements, stranger_account):
        """A correctly signed payment to the wrong recipient is rejected."""
        result = verifier.verify(make_payment(to=stranger_account.address), requirements)
        assert result.invalid_reason == ERR_RECIPIENT_MISMATCH

    def test_unsupported_token(self, verifier, make_payment, requirements):
        """Assets missing from the token registry are rejected."""
        token_requirements = requirements.model_copy(update={"asset": TOKEN})
        result = verifier.verify(make_payment(reqs=token_requirements), token_requirements)
        assert result.invalid_reason == ERR_UNSUPPORTED_TOKEN

    def test_nonce_already_used(self, verifier, settler, make_payment, requirements):
        """A nonce consumed by a settled payment cannot be verified again."""
        payload = make_payment()
        assert settler.settle(payload, requirements).success

        result = verifier.verify(payload, requirements)
        assert result.invalid_reason == ERR_NONCE_ALREADY_USED

    def test_first_failure_wins(self, verifier, make_payment, requirements, stranger_account):
        """Checks run in order: version before signature before amount."""
        payload = make_payment(x402_version=2, signer=stranger_account, value=1)
        assert verifier.verify(payload, requirements).invalid_reason == ERR_VERSION_MISMATCH

        payload = make_payment(signer=stranger_account, value=1)
        assert verifier.verify(payload, requirements).invalid_reason == ERR_INVALID_SIGNATURE


class TestValidityWindow:
    @pytest.mark.parametrize(
        "valid_after,valid_before,reason",
        [
            (NOW - 60, NOW, None),
            (NOW, NOW + 60, None),
            (NOW - 60, NOW - 1, ERR_EXPIRED),
            (NOW + 1, NOW + 60, ERR_NOT_YET_VALID),
        ],
    )
    def test_window_is_inclusive(
        self, verifier, make_payment, requirements, valid_after, valid_before, reason
    ):
        """validAfter <= now <= validBefore, inclusive at both ends."""
        payload = make_payment(valid_after=valid_after, valid_before=valid_before)
        result = verifier.verify(payload, requirements)
        assert result.is_valid is (reason is None)
        assert result.invalid_reason == reason

    def test_expires_as_clock_moves(self, verifier, make_payment, requirements, clock):
        """The same payment becomes expired once the clock passes validBefore."""
        payload = make_payment(valid_before=NOW + 10)
        assert verifier.verify(payload, requirements).is_valid

        clock.advance(11)
        assert verifier.verify(payload, requirements).invalid_reason == ERR_EXPIRED


class TestVerifyHeader:
    def test_decodes_and_verifies(self, verifier, make_payment, requirements):
        """A valid header verifies like the decoded payload."""
        result = verifier.verify_header(encode_payment(make_payment()), requirements)
        assert result.is_valid

    def test_garbage_header(self, verifier, requirements):
        """Undecodable headers are invalid payments, not exceptions."""
        result = verifier.verify_header("definitely-not-a-payment", requirements)
        assert not result.is_valid
        assert result.invalid_reason == ERR_INVALID_ENCODING
