"""
Uniswap v2 Subgraph Market Info Provider

This module implements MarketInfoProvider for Ethereum and ERC20 tokens using
the Uniswap v2 subgraph on The Graph.

Prices come straight from on-chain pool state: a token's price in ETH
(`derivedETH`) times the ETH/USD price of the subgraph bundle, converted to
the quote currency with a fiat cross rate (skipped for USD).

Historical values (24h open, period diffs, 24h volume) are read from the same
subgraph at older block heights. Those heights are resolved from timestamps
by the ethereum-blocks subgraph (see blocks.py).

Structure:
    providers/uniswap/
    ├── __init__.py          # This file (UniswapSubgraphProvider class)
    ├── blocks.py            # Timestamp -> block height
    ├── graph_client.py      # GraphQL POST over HttpTransport
    ├── mappers.py           # Response -> schema mapping
    └── queries.py           # GraphQL query builders
"""

import asyncio
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from core.coins import CoinKind, CoinType
from core.config import settings
from core.errors import MalformedResponseError, UnsupportedCoinTypeError
from core.logging import logger
from core.provider_interface import FiatXRatesProvider, MarketInfoProvider
from core.schemas import CoinMarket, MarketInfoRecord, TimePeriod
from core.transport import HttpTransport
from core.utils.time import current_timestamp
from . import queries
from .blocks import EthBlocksGraphProvider
from .graph_client import GraphClient
from .mappers import (
    WETH_ADDRESS,
    TokensSnapshot,
    map_coin_markets,
    map_market_info_records,
    parse_tokens_snapshot,
)


DAY = 24 * 60 * 60


def token_address(coin_type: CoinType) -> str:
    """
    Uniswap token address of a coin.

    Raises:
        UnsupportedCoinTypeError: Coin is neither Ethereum nor an ERC20 token
    """
    match coin_type.kind:
        case CoinKind.ETHEREUM:
            return WETH_ADDRESS
        case CoinKind.ERC20:
            return coin_type.address
        case _:
            raise UnsupportedCoinTypeError(coin_type, UniswapSubgraphProvider.name)


class UniswapSubgraphProvider(MarketInfoProvider):
    """
    Uniswap v2 subgraph provider.

    Attributes:
        name: Provider identifier ("uniswap")
        fiat_provider: Source of USD -> quote currency rates
        graph: Client for the Uniswap subgraph
        blocks: Block height source sharing the same transport

    Example:
        >>> uniswap = UniswapSubgraphProvider(fiat_provider=coingecko)
        >>> await uniswap.initialize()
        >>> records = await uniswap.get_market_info_records([CoinType.ethereum()], "EUR")
        >>> await uniswap.shutdown()
    """

    # ============================================
    # Class Attributes
    # ============================================

    name = "uniswap"

    # ============================================
    # Initialization
    # ============================================

    def __init__(
        self,
        fiat_provider: FiatXRatesProvider,
        blocks: Optional[EthBlocksGraphProvider] = None,
        graph: Optional[GraphClient] = None,
        clock: Callable[[], int] = current_timestamp
    ):
        self.fiat_provider = fiat_provider
        self.graph = graph or GraphClient(settings.uniswap_subgraph_url)
        self.blocks = blocks or EthBlocksGraphProvider()
        self.transport: Optional[HttpTransport] = None
        self._clock = clock

        logger.debug(f"UniswapSubgraphProvider created (subgraph={self.graph.url})")

    async def initialize(self) -> None:
        logger.info("Initializing Uniswap provider...")
        self.transport = HttpTransport(provider="uniswap", timeout=settings.request_timeout)
        await self.transport.__aenter__()
        self.graph.transport = self.transport
        self.blocks.graph.transport = self.transport
        logger.info("✓ Uniswap provider initialized")

    async def shutdown(self) -> None:
        logger.info("Shutting down Uniswap provider...")
        if self.transport:
            await self.transport.__aexit__(None, None, None)
            self.transport = None
        logger.info("✓ Uniswap provider shut down")

    # ============================================
    # Helpers
    # ============================================

    async def _fiat_rate(self, currency_code: str) -> Decimal:
        if currency_code.upper() == "USD":
            return Decimal(1)
        return await self.fiat_provider.latest_fiat_xrate("USD", currency_code)

    @staticmethod
    def _coin_types_by_address(coin_types: Sequence[CoinType]) -> Dict[str, List[CoinType]]:
        coin_types_by_address: Dict[str, List[CoinType]] = {}
        for coin_type in coin_types:
            try:
                address = token_address(coin_type)
            except UnsupportedCoinTypeError:
                logger.debug(f"Uniswap does not serve {coin_type}, skipping")
                continue
            bucket = coin_types_by_address.setdefault(address, [])
            if coin_type not in bucket:
                bucket.append(coin_type)
        return coin_types_by_address

    async def _tokens(self, body: str) -> TokensSnapshot:
        return parse_tokens_snapshot(await self.graph.query(body))

    # ============================================
    # Market Info Records
    # ============================================

    async def get_market_info_records(
        self,
        coin_types: Sequence[CoinType],
        currency_code: str
    ) -> List[MarketInfoRecord]:
        """
        Current rate and 24h diff for Ethereum and ERC20 coins.

        The open rate is the latest token day datum at or before now - 24h.
        Other coin kinds, and tokens with no day data, are left out.
        """
        coin_types_by_address = self._coin_types_by_address(coin_types)
        if not coin_types_by_address:
            return []

        addresses = list(coin_types_by_address.keys())
        body = " ".join([
            queries.token_day_datas(addresses, self._clock() - DAY),
            queries.eth_price(),
        ])

        data, fiat_rate = await asyncio.gather(self.graph.query(body), self._fiat_rate(currency_code))
        return map_market_info_records(data, coin_types_by_address, addresses, currency_code, fiat_rate)

    # ============================================
    # Coin Markets
    # ============================================

    async def fetch_top_coin_markets(
        self,
        currency_code: str,
        period: TimePeriod,
        item_count: int
    ) -> List[CoinMarket]:
        """Top `item_count` tokens by trade volume, sorted by liquidity."""
        return await self._coin_markets(
            lambda: self._tokens(queries.top_tokens(item_count)),
            lambda address: [CoinType.erc20(address)],
            currency_code,
            period
        )

    async def fetch_coin_markets(
        self,
        currency_code: str,
        period: TimePeriod,
        coin_types: Sequence[CoinType]
    ) -> List[CoinMarket]:
        """Markets for specific Ethereum/ERC20 coins, sorted by liquidity."""
        coin_types_by_address = self._coin_types_by_address(coin_types)
        if not coin_types_by_address:
            return []

        addresses = list(coin_types_by_address.keys())
        return await self._coin_markets(
            lambda: self._tokens(queries.tokens_by_address(addresses)),
            lambda address: coin_types_by_address.get(address, []),
            currency_code,
            period
        )

    async def _coin_markets(
        self,
        current_snapshot: Callable[[], Awaitable[TokensSnapshot]],
        coin_types_for: Callable[[str], List[CoinType]],
        currency_code: str,
        period: TimePeriod
    ) -> List[CoinMarket]:
        """
        Current snapshot and block heights are fetched concurrently; the
        historical snapshots, which need the heights, follow. The period
        snapshot is skipped when its height equals the 24h height.

        Raises:
            MalformedResponseError: No block found for the 24h timestamp
        """
        now = self._clock()
        timestamps = {
            TimePeriod.HOUR_24: now - DAY,
            period: now - period.seconds(now),
        }

        heights, current, fiat_rate = await asyncio.gather(
            self.blocks.block_heights(timestamps),
            current_snapshot(),
            self._fiat_rate(currency_code),
        )

        height_24h = heights.get(TimePeriod.HOUR_24)
        if height_24h is None:
            raise MalformedResponseError("No block height for the 24h snapshot")
        height_period = heights.get(period)

        if not current.tokens:
            return []

        addresses = [token.address for token in current.tokens]
        if height_period is None or height_period == height_24h:
            day_ago = await self._tokens(queries.tokens_by_address(addresses, height_24h))
            period_ago = None
        else:
            day_ago, period_ago = await asyncio.gather(
                self._tokens(queries.tokens_by_address(addresses, height_24h)),
                self._tokens(queries.tokens_by_address(addresses, height_period)),
            )

        markets = map_coin_markets(current, day_ago, period_ago, period, currency_code, fiat_rate, coin_types_for)
        logger.debug(f"Mapped {len(markets)} Uniswap markets (period={period.value})")
        return markets


__all__ = ["UniswapSubgraphProvider", "EthBlocksGraphProvider", "GraphClient", "token_address", "WETH_ADDRESS"]
