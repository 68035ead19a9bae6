from unittest.mock import MagicMock

from x402_facilitator.origin import NativeOriginResolver, StaticOriginResolver, attribute_origin
from x402_facilitator.schemas import NATIVE_ASSET, OriginInfo
from x402_facilitator.tokens import ContractTokenRegistry, StaticTokenRegistry

TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
PROXY = "0x1111111111111111111111111111111111111111"


class TestTokenRegistries:
    def test_static(self):
        """The allow-list is case-insensitive and native is always accepted."""
        registry = StaticTokenRegistry([TOKEN.lower()])

        assert registry.is_supported(TOKEN)
        assert registry.is_supported(NATIVE_ASSET)
        assert not registry.is_supported(PROXY)

        registry.add(PROXY)
        assert registry.is_supported(PROXY)

    def test_contract(self):
        """Non-native assets are checked with isSupportedToken."""
        w3 = MagicMock()
        w3.to_checksum_address.side_effect = lambda a: a
        w3.eth.contract.return_value.functions.isSupportedToken.return_value.call.return_value = 1
        registry = ContractTokenRegistry(w3, PROXY)

        assert registry.is_supported(TOKEN) is True
        w3.eth.contract.return_value.functions.isSupportedToken.assert_called_once_with(TOKEN)

        assert registry.is_supported(NATIVE_ASSET) is True
        assert w3.eth.contract.return_value.functions.isSupportedToken.call_count == 1


class TestOriginResolvers:
    def test_native(self):
        assert NativeOriginResolver().resolve_origin(PROXY) is None

    def test_static(self):
        """Registered proxies resolve to their origin regardless of case."""
        origin = OriginInfo(chain_namespace="eip155", chain_id="1", address=PROXY)
        resolver = StaticOriginResolver({TOKEN.lower(): origin})

        assert resolver.resolve_origin(TOKEN) == origin
        assert resolver.resolve_origin(PROXY) is None

    def test_attribution(self):
        origin = OriginInfo(chain_namespace="eip155", chain_id="1", address=TOKEN)

        assert attribute_origin(PROXY, None) == ("native", PROXY, False)
        assert attribute_origin(PROXY, origin) == ("eip155:1", TOKEN, True)
