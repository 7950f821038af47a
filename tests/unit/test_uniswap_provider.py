"""
Unit Tests for the Uniswap Subgraph Provider

The GraphQL clients' `query` methods are monkeypatched, so these tests check
both the generated queries and the mapping of subgraph answers:
- Market info records from token day data and the ETH bundle price
- Coin markets from current and historical block snapshots
- Block height resolution and snapshot fallbacks
- GraphQL error handling

Run with:
    pytest tests/unit/test_uniswap_provider.py -v
"""

from decimal import Decimal

import pytest

from core.coins import CoinType
from core.errors import MalformedResponseError, UnsupportedCoinTypeError
from core.provider_interface import FiatXRatesProvider
from core.schemas import TimePeriod
from providers.uniswap import EthBlocksGraphProvider, GraphClient, UniswapSubgraphProvider, WETH_ADDRESS, token_address
from providers.uniswap.blocks import blocks_query


NOW = 1_700_000_000
UNI_ADDRESS = "0x1f9840a85d5af5bf1d1762f925bdaddc4201f984"
TOKEN_A = "0x000000000000000000000000000000000000000a"
TOKEN_B = "0x000000000000000000000000000000000000000b"


# ============================================
# Fakes & Fixtures
# ============================================

class FakeFiat(FiatXRatesProvider):
    def __init__(self, rate: str = "0.9"):
        self.rate = Decimal(rate)
        self.calls = []

    async def latest_fiat_xrate(self, source_currency, target_currency):
        self.calls.append((source_currency, target_currency))
        return self.rate


class FakeQuery:
    """Stand-in for GraphClient.query: records bodies, answers via a handler."""

    def __init__(self, handler):
        self.handler = handler
        self.bodies = []

    async def __call__(self, body):
        self.bodies.append(body)
        return self.handler(body)


def token(address, symbol, derived_eth, volume="0", liquidity="0", name=None):
    return {
        "id": address,
        "symbol": symbol,
        "name": name or symbol,
        "derivedETH": derived_eth,
        "tradeVolumeUSD": volume,
        "totalLiquidity": liquidity,
    }


@pytest.fixture
def fiat():
    return FakeFiat()


@pytest.fixture
def provider(fiat):
    return UniswapSubgraphProvider(
        fiat_provider=fiat,
        blocks=EthBlocksGraphProvider(graph=GraphClient("https://blocks.test")),
        graph=GraphClient("https://uniswap.test"),
        clock=lambda: NOW,
    )


# ============================================
# Token Addresses
# ============================================

class TestTokenAddress:
    def test_ethereum_maps_to_weth(self):
        assert token_address(CoinType.ethereum()) == WETH_ADDRESS

    def test_erc20_maps_to_its_address(self):
        assert token_address(CoinType.erc20(UNI_ADDRESS)) == UNI_ADDRESS

    @pytest.mark.parametrize("coin", [CoinType.bitcoin(), CoinType.bep20(UNI_ADDRESS), CoinType.bep2("BNB")])
    def test_other_kinds_unsupported(self, coin):
        with pytest.raises(UnsupportedCoinTypeError):
            token_address(coin)


# ============================================
# Market Info Records
# ============================================

class TestMarketInfoRecords:
    """Tests for get_market_info_records"""

    RESPONSE = {
        "o0": [{"token": {"id": WETH_ADDRESS, "symbol": "WETH", "derivedETH": "1"}, "priceUSD": "1600"}],
        "o1": [{"token": {"id": UNI_ADDRESS, "symbol": "UNI", "derivedETH": "0.003"}, "priceUSD": "5"}],
        "bundle": {"ethPrice": "2000"},
    }

    @pytest.mark.asyncio
    async def test_records_in_usd(self, provider, fiat, monkeypatch):
        fake = FakeQuery(lambda body: self.RESPONSE)
        monkeypatch.setattr(provider.graph, "query", fake)

        records = await provider.get_market_info_records(
            [CoinType.ethereum(), CoinType.erc20(UNI_ADDRESS), CoinType.bitcoin()], "USD"
        )

        by_coin = {r.coin_type: r for r in records}
        eth = by_coin[CoinType.ethereum()]
        uni = by_coin[CoinType.erc20(UNI_ADDRESS)]

        assert len(records) == 2
        assert eth.coin_code == "ETH"
        assert eth.rate == Decimal(2000)
        assert eth.open_day == Decimal(1600)
        assert eth.diff == Decimal(25)
        assert uni.coin_code == "UNI"
        assert uni.rate == Decimal(6)
        assert uni.diff == Decimal(20)
        assert fiat.calls == []

    @pytest.mark.asyncio
    async def test_single_batched_query(self, provider, monkeypatch):
        fake = FakeQuery(lambda body: self.RESPONSE)
        monkeypatch.setattr(provider.graph, "query", fake)

        await provider.get_market_info_records([CoinType.ethereum(), CoinType.erc20(UNI_ADDRESS)], "USD")

        assert len(fake.bodies) == 1
        body = fake.bodies[0]
        assert f"date_lte: {NOW - 86400}" in body
        assert f'token: "{WETH_ADDRESS}"' in body
        assert f'token: "{UNI_ADDRESS}"' in body
        assert "bundle(id: 1)" in body

    @pytest.mark.asyncio
    async def test_fiat_conversion(self, provider, fiat, monkeypatch):
        response = {"o0": self.RESPONSE["o1"], "bundle": self.RESPONSE["bundle"]}
        monkeypatch.setattr(provider.graph, "query", FakeQuery(lambda body: response))

        records = await provider.get_market_info_records([CoinType.erc20(UNI_ADDRESS)], "EUR")

        assert fiat.calls == [("USD", "EUR")]
        assert records[0].currency_code == "EUR"
        assert records[0].rate == Decimal("5.4")
        assert records[0].open_day == Decimal("4.5")

    @pytest.mark.asyncio
    async def test_coin_without_day_data_omitted(self, provider, monkeypatch):
        response = {"o0": [], "bundle": {"ethPrice": "2000"}}
        monkeypatch.setattr(provider.graph, "query", FakeQuery(lambda body: response))

        assert await provider.get_market_info_records([CoinType.erc20(UNI_ADDRESS)], "USD") == []

    @pytest.mark.asyncio
    async def test_no_dex_coins_makes_no_request(self, provider, monkeypatch):
        fake = FakeQuery(lambda body: {})
        monkeypatch.setattr(provider.graph, "query", fake)

        assert await provider.get_market_info_records([CoinType.bitcoin()], "USD") == []
        assert fake.bodies == []

    @pytest.mark.asyncio
    async def test_missing_bundle_raises(self, provider, monkeypatch):
        response = {"o0": self.RESPONSE["o1"]}
        monkeypatch.setattr(provider.graph, "query", FakeQuery(lambda body: response))

        with pytest.raises(MalformedResponseError):
            await provider.get_market_info_records([CoinType.erc20(UNI_ADDRESS)], "USD")


# ============================================
# Coin Markets
# ============================================

CURRENT = {
    "tokens": [
        token(TOKEN_A, "AAA", "0.5", volume="1000", liquidity="10"),
        token(TOKEN_B, "BBB", "0.01", volume="500", liquidity="100000"),
    ],
    "bundle": {"ethPrice": "2000"},
}
DAY_AGO = {
    "tokens": [token(TOKEN_A, "AAA", "0.4", volume="900")],
    "bundle": {"ethPrice": "2000"},
}
WEEK_AGO = {
    "tokens": [
        token(TOKEN_A, "AAA", "0.5"),
        token(TOKEN_B, "BBB", "0.01"),
    ],
    "bundle": {"ethPrice": "1000"},
}


def snapshots(body):
    if "block: {number: 100}" in body:
        return DAY_AGO
    if "block: {number: 50}" in body:
        return WEEK_AGO
    return CURRENT


class TestCoinMarkets:
    """Tests for fetch_top_coin_markets / fetch_coin_markets"""

    @pytest.mark.asyncio
    async def test_top_coin_markets(self, provider, monkeypatch):
        blocks = FakeQuery(lambda body: {"hour24": [{"number": "100"}], "day7": [{"number": "50"}]})
        graph = FakeQuery(snapshots)
        monkeypatch.setattr(provider.blocks.graph, "query", blocks)
        monkeypatch.setattr(provider.graph, "query", graph)

        markets = await provider.fetch_top_coin_markets("USD", TimePeriod.DAY_7, 2)

        assert [m.coin_data.code for m in markets] == ["BBB", "AAA"]
        bbb, aaa = markets[0].record, markets[1].record

        assert aaa.rate == Decimal(1000)
        assert aaa.open_day == Decimal(800)
        assert aaa.diff == Decimal(25)
        assert aaa.volume == Decimal(100)
        assert aaa.liquidity == Decimal(10000)
        assert aaa.rate_diffs[TimePeriod.DAY_7] == Decimal(100)

        assert bbb.coin_type == CoinType.erc20(TOKEN_B)
        assert bbb.open_day == 0
        assert bbb.diff == 0
        assert bbb.volume == 0
        assert bbb.rate_diffs[TimePeriod.DAY_7] == Decimal(100)

        assert len(graph.bodies) == 3
        assert f"timestamp_gt: {NOW - 86400}" in blocks.bodies[0]
        assert f"timestamp_gt: {NOW - 7 * 86400}" in blocks.bodies[0]

    @pytest.mark.asyncio
    async def test_equal_heights_skip_period_snapshot(self, provider, monkeypatch):
        monkeypatch.setattr(
            provider.blocks.graph, "query",
            FakeQuery(lambda body: {"hour24": [{"number": "100"}], "day7": [{"number": "100"}]})
        )
        graph = FakeQuery(snapshots)
        monkeypatch.setattr(provider.graph, "query", graph)

        markets = await provider.fetch_top_coin_markets("USD", TimePeriod.DAY_7, 2)

        assert len(graph.bodies) == 2
        aaa = markets[1].record
        assert aaa.rate_diffs[TimePeriod.DAY_7] == aaa.rate_diffs[TimePeriod.HOUR_24]

    @pytest.mark.asyncio
    async def test_missing_period_height_falls_back_to_24h(self, provider, monkeypatch):
        monkeypatch.setattr(provider.blocks.graph, "query", FakeQuery(lambda body: {"hour24": [{"number": "100"}], "day7": []}))
        graph = FakeQuery(snapshots)
        monkeypatch.setattr(provider.graph, "query", graph)

        markets = await provider.fetch_top_coin_markets("USD", TimePeriod.DAY_7, 2)

        assert len(graph.bodies) == 2
        assert markets[1].record.rate_diffs[TimePeriod.DAY_7] == Decimal(25)

    @pytest.mark.asyncio
    async def test_missing_24h_height_raises(self, provider, monkeypatch):
        monkeypatch.setattr(provider.blocks.graph, "query", FakeQuery(lambda body: {"hour24": []}))
        monkeypatch.setattr(provider.graph, "query", FakeQuery(snapshots))

        with pytest.raises(MalformedResponseError):
            await provider.fetch_top_coin_markets("USD", TimePeriod.HOUR_24, 2)

    @pytest.mark.asyncio
    async def test_coin_markets_for_ethereum(self, provider, fiat, monkeypatch):
        current = {"tokens": [token(WETH_ADDRESS, "WETH", "1", liquidity="5", name="Wrapped Ether")], "bundle": {"ethPrice": "2000"}}
        day_ago = {"tokens": [token(WETH_ADDRESS, "WETH", "1")], "bundle": {"ethPrice": "1600"}}
        monkeypatch.setattr(provider.blocks.graph, "query", FakeQuery(lambda body: {"hour24": [{"number": "100"}]}))
        graph = FakeQuery(lambda body: day_ago if "block:" in body else current)
        monkeypatch.setattr(provider.graph, "query", graph)

        markets = await provider.fetch_coin_markets("EUR", TimePeriod.HOUR_24, [CoinType.ethereum(), CoinType.bitcoin()])

        assert len(markets) == 1
        market = markets[0]
        assert market.coin_data.coin_type == CoinType.ethereum()
        assert market.coin_data.code == "ETH"
        assert market.record.rate == Decimal("1800")
        assert market.record.diff == Decimal(25)
        assert f'id_in: ["{WETH_ADDRESS}"]' in graph.bodies[0]
        assert fiat.calls == [("USD", "EUR")]


# ============================================
# Blocks & GraphQL Client
# ============================================

class TestBlockHeights:
    @pytest.mark.asyncio
    async def test_block_heights(self, monkeypatch):
        blocks = EthBlocksGraphProvider(graph=GraphClient("https://blocks.test"))
        monkeypatch.setattr(blocks.graph, "query", FakeQuery(lambda body: {"hour24": [{"number": "123"}], "day7": []}))

        heights = await blocks.block_heights({TimePeriod.HOUR_24: NOW - 86400, TimePeriod.DAY_7: NOW - 604800})

        assert heights == {TimePeriod.HOUR_24: 123}

    def test_blocks_query_window(self):
        query = blocks_query({TimePeriod.HOUR_24: 1000})
        assert query.startswith("hour24: blocks(first: 1, orderBy: timestamp, orderDirection: asc")
        assert "timestamp_gt: 1000, timestamp_lt: 1600" in query


class FakeTransport:
    def __init__(self, response):
        self.response = response
        self.payloads = []

    async def post(self, url, payload):
        self.payloads.append(payload)
        return self.response


class TestGraphClient:
    @pytest.mark.asyncio
    async def test_returns_data(self):
        transport = FakeTransport({"data": {"bundle": {"ethPrice": "1"}}})
        client = GraphClient("https://uniswap.test", transport=transport)

        data = await client.query("bundle(id: 1) { ethPrice }")

        assert data == {"bundle": {"ethPrice": "1"}}
        assert transport.payloads == [{"query": "{bundle(id: 1) { ethPrice }}"}]

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        client = GraphClient("https://uniswap.test", transport=FakeTransport({"errors": [{"message": "boom"}]}))

        with pytest.raises(MalformedResponseError, match="boom"):
            await client.query("bundle(id: 1) { ethPrice }")

    @pytest.mark.asyncio
    async def test_without_transport_raises(self):
        with pytest.raises(RuntimeError):
            await GraphClient("https://uniswap.test").query("bundle(id: 1) { ethPrice }")
