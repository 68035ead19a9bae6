"""Test doubles for clocks and chain access."""

from x402_facilitator.errors import TransferNotFoundError
from x402_facilitator.transfers import Transfer, TransferReceipt

NOW = 1_700_000_000


class FakeClock:
    """Callable clock pinned to a settable instant."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeReceiptFetcher:
    """ReceiptFetcher backed by canned receipts or exceptions."""

    def __init__(self) -> None:
        self.receipts: dict = {}
        self.calls: list = []

    def add(self, tx_hash, from_, to, value, status=1):
        self.receipts[tx_hash.lower()] = TransferReceipt(
            tx_hash=tx_hash,
            status=status,
            transfers=[Transfer(from_=from_, to=to, value=value)],
        )

    def fail_with(self, tx_hash, error):
        self.receipts[tx_hash.lower()] = error

    def get_transfer(self, tx_hash, asset):
        self.calls.append((tx_hash, asset))
        result = self.receipts.get(tx_hash.lower())
        if result is None:
            raise TransferNotFoundError(f"Transaction {tx_hash} not found")
        if isinstance(result, Exception):
            raise result
        return result


class FakeExecutor:
    """TransferExecutor that returns a fixed proof."""

    def __init__(self, proof):
        self.proof = proof
        self.calls = 0

    def execute(self, payload, requirements):
        self.calls += 1
        return self.proof
