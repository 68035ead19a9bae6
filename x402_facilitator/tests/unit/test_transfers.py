from unittest.mock import MagicMock

import pytest
import requests
from web3.exceptions import TransactionNotFound

from x402_facilitator.errors import (
    TransferFailedOnSourceError,
    TransferMismatchError,
    TransferNotFoundError,
    TransientError,
    UnsupportedNetworkError,
)
from x402_facilitator.mechanisms.evm.constants import ERC20_TRANSFER_TOPIC
from x402_facilitator.schemas import NATIVE_ASSET
from x402_facilitator.transfers import (
    TransferConfirmer,
    TransferProof,
    TransferReceipt,
    Web3ReceiptFetcher,
    proof_from_payload,
)

from ..mocks import AMOUNT, OTHER_TX_HASH, TX_HASH, FakeReceiptFetcher

TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class FlakyFetcher:
    """Fails with TransientError ``failures`` times, then delegates."""

    def __init__(self, inner, failures):
        self.inner = inner
        self.failures = failures
        self.attempts = 0

    def get_transfer(self, tx_hash, asset):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise TransientError("node timeout")
        return self.inner.get_transfer(tx_hash, asset)


@pytest.fixture
def proof():
    return TransferProof(tx_hash=TX_HASH, network="push-chain")


@pytest.fixture
def authorization(make_payment):
    return make_payment().payload.authorization


class TestConfirm:
    def test_confirmed(self, confirmer, proof, authorization, requirements, fetcher):
        """A matching successful transfer is confirmed."""
        receipt = confirmer.confirm(proof, authorization, requirements)

        assert isinstance(receipt, TransferReceipt)
        assert receipt.succeeded
        assert fetcher.calls == [(TX_HASH, NATIVE_ASSET)]

    def test_overpayment_accepted(self, confirmer, fetcher, proof, authorization, requirements,
                                  payer_account, merchant):
        """Moving more than authorized still proves the payment."""
        fetcher.add(TX_HASH, payer_account.address, merchant, AMOUNT * 2)
        confirmer.confirm(proof, authorization, requirements)

    def test_reverted(self, confirmer, fetcher, proof, authorization, requirements,
                      payer_account, merchant):
        """A reverted transaction failed on its source chain."""
        fetcher.add(TX_HASH, payer_account.address, merchant, AMOUNT, status=0)
        with pytest.raises(TransferFailedOnSourceError):
            confirmer.confirm(proof, authorization, requirements)

    def test_wrong_recipient(self, confirmer, fetcher, proof, authorization, requirements,
                             payer_account, stranger_account):
        """Funds sent elsewhere do not prove the payment."""
        fetcher.add(TX_HASH, payer_account.address, stranger_account.address, AMOUNT)
        with pytest.raises(TransferMismatchError):
            confirmer.confirm(proof, authorization, requirements)

    def test_wrong_sender(self, confirmer, fetcher, proof, authorization, requirements,
                          stranger_account, merchant):
        """Someone else's transfer does not prove the payer paid."""
        fetcher.add(TX_HASH, stranger_account.address, merchant, AMOUNT)
        with pytest.raises(TransferMismatchError):
            confirmer.confirm(proof, authorization, requirements)

    def test_short_amount(self, confirmer, fetcher, proof, authorization, requirements,
                          payer_account, merchant):
        """Moving less than authorized is a mismatch."""
        fetcher.add(TX_HASH, payer_account.address, merchant, AMOUNT - 1)
        with pytest.raises(TransferMismatchError, match="insufficient"):
            confirmer.confirm(proof, authorization, requirements)

    def test_not_found_is_not_retried(self, confirmer, fetcher, authorization, requirements):
        """A confirmed absence returns immediately."""
        missing = TransferProof(tx_hash=OTHER_TX_HASH, network="push-chain")
        with pytest.raises(TransferNotFoundError):
            confirmer.confirm(missing, authorization, requirements)
        assert len(fetcher.calls) == 1

    def test_unregistered_network(self, confirmer, authorization, requirements):
        """Proofs on networks without a fetcher cannot be confirmed."""
        with pytest.raises(UnsupportedNetworkError):
            confirmer.confirm(
                TransferProof(tx_hash=TX_HASH, network="base"), authorization, requirements
            )
        assert confirmer.supports("push-chain")
        assert not confirmer.supports("base")
        assert not confirmer.supports("not-a-chain")

    def test_cross_network_proof_checks_native_value(self, confirmer, fetcher, authorization,
                                                     requirements):
        """A proof on another chain is read as a native transfer."""
        token_requirements = requirements.model_copy(update={"asset": TOKEN})
        cross = TransferProof(tx_hash=TX_HASH, network="ethereum-sepolia")

        confirmer.confirm(cross, authorization, token_requirements)
        confirmer.confirm(TransferProof(TX_HASH, "push-chain"), authorization, token_requirements)

        assert fetcher.calls == [(TX_HASH, NATIVE_ASSET), (TX_HASH, TOKEN)]


class TestRetries:
    def test_transient_failure_retried(self, fetcher, proof, authorization, requirements):
        """Transient failures back off exponentially then succeed."""
        delays = []
        flaky = FlakyFetcher(fetcher, failures=2)
        confirmer = TransferConfirmer(
            {"push-chain": flaky}, max_retries=2, backoff_seconds=0.01, sleep=delays.append
        )

        confirmer.confirm(proof, authorization, requirements)

        assert flaky.attempts == 3
        assert delays == [0.01, 0.02]

    def test_persistent_transient_failure(self, fetcher, proof, authorization, requirements):
        """Once retries are exhausted the TransientError propagates."""
        delays = []
        flaky = FlakyFetcher(fetcher, failures=10)
        confirmer = TransferConfirmer(
            {"push-chain": flaky}, max_retries=2, backoff_seconds=0.01, sleep=delays.append
        )

        with pytest.raises(TransientError) as exc_info:
            confirmer.confirm(proof, authorization, requirements)

        assert exc_info.value.retryable
        assert flaky.attempts == 3
        assert len(delays) == 2


class TestProofFromPayload:
    def test_defaults_to_payment_network(self, make_payment):
        """Proofs without txNetwork live on the payment's network."""
        assert proof_from_payload(make_payment()) == TransferProof(TX_HASH, "push-chain")

    def test_explicit_network(self, make_payment):
        """txNetwork points the proof at another chain."""
        proof = proof_from_payload(make_payment(tx_network="ethereum-sepolia"))
        assert proof.network == "ethereum-sepolia"
        assert proof.trusted is False

    def test_no_proof(self, make_payment):
        """Payloads without txHash carry no proof."""
        assert proof_from_payload(make_payment(tx_hash=None)) is None


class TestWeb3ReceiptFetcher:
    @pytest.fixture
    def w3(self):
        return MagicMock()

    def test_native_transfer(self, w3, payer_account, merchant):
        """Native value is read from the transaction."""
        w3.eth.get_transaction_receipt.return_value = {"status": 1, "logs": []}
        w3.eth.get_transaction.return_value = {
            "from": payer_account.address,
            "to": merchant,
            "value": AMOUNT,
        }

        receipt = Web3ReceiptFetcher(w3=w3).get_transfer(TX_HASH, NATIVE_ASSET)

        assert receipt.succeeded
        assert receipt.transfers[0].from_ == payer_account.address
        assert receipt.transfers[0].to == merchant
        assert receipt.transfers[0].value == AMOUNT

    def test_erc20_transfer_logs(self, w3, payer_account, merchant):
        """Token transfers are decoded from the asset's Transfer logs."""

        def topic(address):
            return "0x" + "00" * 12 + address[2:].lower()

        w3.eth.get_transaction_receipt.return_value = {
            "status": 1,
            "logs": [
                {
                    "address": TOKEN,
                    "topics": [ERC20_TRANSFER_TOPIC, topic(payer_account.address), topic(merchant)],
                    "data": "0x" + format(AMOUNT, "064x"),
                },
                {
                    # Same event from an unrelated contract
                    "address": "0x" + "99" * 20,
                    "topics": [ERC20_TRANSFER_TOPIC, topic(payer_account.address), topic(merchant)],
                    "data": "0x" + format(1, "064x"),
                },
            ],
        }
        w3.eth.get_transaction.return_value = {"from": payer_account.address, "to": TOKEN, "value": 0}

        receipt = Web3ReceiptFetcher(w3=w3).get_transfer(TX_HASH, TOKEN)

        assert len(receipt.transfers) == 1
        assert receipt.transfers[0].from_ == payer_account.address
        assert receipt.transfers[0].to == merchant
        assert receipt.transfers[0].value == AMOUNT

    def test_not_found(self, w3):
        """TransactionNotFound maps to TransferNotFoundError."""
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("missing")
        with pytest.raises(TransferNotFoundError):
            Web3ReceiptFetcher(w3=w3).get_transfer(TX_HASH, NATIVE_ASSET)

    def test_connection_error_is_transient(self, w3):
        """Network failures map to TransientError."""
        w3.eth.get_transaction_receipt.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(TransientError):
            Web3ReceiptFetcher(w3=w3).get_transfer(TX_HASH, NATIVE_ASSET)

    def test_requires_rpc_url_or_w3(self):
        """A fetcher needs somewhere to read from."""
        with pytest.raises(ValueError):
            Web3ReceiptFetcher()
