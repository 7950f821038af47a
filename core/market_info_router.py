"""
Market Info Router: Dispatches Coins to Their Source

The router holds the two market info providers and decides, per coin, which
one serves it:

    - Ethereum and ERC20 tokens  -> DEX provider (Uniswap subgraph)
    - every other coin kind      -> main provider (CoinGecko)

Both partitions are fetched concurrently and the results concatenated. The
router does not hide a failed partition behind the other one's success: if
either provider raises, the whole call raises.

Example Usage:
    router = MarketInfoRouter(main_provider=coingecko, dex_provider=uniswap)
    await router.initialize()
    records = await router.get_market_info_records(coins, "USD")
    await router.shutdown()
"""

import asyncio
from typing import List, Sequence, Tuple

from core.coins import CoinKind, CoinType
from core.logging import logger
from core.provider_interface import MarketInfoProvider
from core.schemas import MarketInfoRecord


def partition_coin_types(coin_types: Sequence[CoinType]) -> Tuple[List[CoinType], List[CoinType]]:
    """
    Split coins into (dex_coins, other_coins), preserving input order.

    Example:
        >>> dex, other = partition_coin_types([CoinType.ethereum(), CoinType.bitcoin()])
        >>> [c.id for c in dex], [c.id for c in other]
        (['ethereum'], ['bitcoin'])
    """
    dex_coins: List[CoinType] = []
    other_coins: List[CoinType] = []

    for coin_type in coin_types:
        match coin_type.kind:
            case CoinKind.ETHEREUM | CoinKind.ERC20:
                dex_coins.append(coin_type)
            case _:
                other_coins.append(coin_type)

    return dex_coins, other_coins


class MarketInfoRouter(MarketInfoProvider):
    """
    Routing provider over a main (aggregator) and a DEX provider.

    Attributes:
        main_provider: Serves every coin that is not on Ethereum
        dex_provider: Serves Ethereum and ERC20 tokens
    """

    name = "router"

    def __init__(self, main_provider: MarketInfoProvider, dex_provider: MarketInfoProvider):
        self.main_provider = main_provider
        self.dex_provider = dex_provider

        logger.info(f"MarketInfoRouter initialized with providers: {main_provider.name}, {dex_provider.name}")

    # ============================================
    # Routing
    # ============================================

    async def get_market_info_records(
        self,
        coin_types: Sequence[CoinType],
        currency_code: str
    ) -> List[MarketInfoRecord]:
        """
        Fetch records for all coins, each from its own source.

        Raises:
            MarketInfoError: First failure of either partition
        """
        dex_coins, other_coins = partition_coin_types(coin_types)
        logger.debug(
            f"Routing {len(other_coins)} coin(s) to {self.main_provider.name}, "
            f"{len(dex_coins)} coin(s) to {self.dex_provider.name}"
        )

        main_records, dex_records = await asyncio.gather(
            self._fetch(self.main_provider, other_coins, currency_code),
            self._fetch(self.dex_provider, dex_coins, currency_code),
        )

        return main_records + dex_records

    @staticmethod
    async def _fetch(
        provider: MarketInfoProvider,
        coin_types: List[CoinType],
        currency_code: str
    ) -> List[MarketInfoRecord]:
        if not coin_types:
            return []
        return await provider.get_market_info_records(coin_types, currency_code)

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize(self) -> None:
        logger.info("Initializing market info providers...")
        for provider in (self.main_provider, self.dex_provider):
            await provider.initialize()
            logger.info(f"✓ {provider.name} initialized")

    async def shutdown(self) -> None:
        """Shut both providers down; one failing shutdown does not stop the other."""
        logger.info("Shutting down market info providers...")
        for provider in (self.main_provider, self.dex_provider):
            try:
                await provider.shutdown()
                logger.info(f"✓ {provider.name} shut down")
            except Exception as e:
                logger.error(f"✗ Error shutting down {provider.name}: {e}")
