"""Mock implementations for testing."""

from .doubles import NOW, FakeClock, FakeExecutor, FakeReceiptFetcher

# Well-known development keys; never hold funds.
ADMIN_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
PAYER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
MERCHANT_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
FACILITATOR_KEY = "0x7c852118294e51e653712a81e05800f419141751be58f605c371e15141b007a6"
STRANGER_KEY = "0x47e179ec197488593b187f80a00eb0da91f1b9d0b13f8733639f19c30a34926a"

RESOURCE = "/api/premium-data"
AMOUNT = 1000
NONCE = "0x" + "11" * 32
TX_HASH = "0x" + "ab" * 32
OTHER_TX_HASH = "0x" + "cd" * 32

__all__ = [
    "NOW",
    "FakeClock",
    "FakeExecutor",
    "FakeReceiptFetcher",
    "ADMIN_KEY",
    "PAYER_KEY",
    "MERCHANT_KEY",
    "FACILITATOR_KEY",
    "STRANGER_KEY",
    "RESOURCE",
    "AMOUNT",
    "NONCE",
    "TX_HASH",
    "OTHER_TX_HASH",
]
