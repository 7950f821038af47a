"""
Market Info Manager

The surface the rest of an application talks to. It owns the watched coin
list, keeps the latest market info per currency in an expirable cache, and
publishes every refreshed mapping on the event bus.

    manager = build_market_info_manager()
    await manager.start()                      # initialize providers, sync in background
    record = manager.market_info(CoinType.bitcoin())
    async for records in manager.market_info_records_stream("USD"):
        ...
    await manager.stop()

Failures never clear the cache: a failed refresh is logged by the background
loop and the previous entry stays in place until a later refresh succeeds.
"""

import asyncio
import contextlib
from typing import AsyncGenerator, Callable, Dict, List, Optional, Sequence

from core.coins import CoinType
from core.config import settings
from core.identifiers import ProviderCoinsCatalog
from core.logging import get_logger
from core.market_info_router import MarketInfoRouter
from core.provider_interface import MarketInfoProvider
from core.schemas import MarketInfoRecord
from core.utils.time import current_timestamp, to_utc_datetime
from services.event_bus import EventBus, market_info_topic
from storage.cache import MarketInfoCache


class MarketInfoManager:
    """
    Cached, periodically synced market info for a set of coins.

    Attributes:
        provider: Market info source (normally a MarketInfoRouter)
        cache: Latest mapping per currency
        bus: Event bus refreshed mappings are published on
        expiration_interval: Seconds after which a mapping is stale
        sync_interval: Seconds between background sync attempts
        currency_code: Default quote currency
    """

    def __init__(
        self,
        provider: MarketInfoProvider,
        coin_types: Sequence[CoinType] = (),
        bus: Optional[EventBus] = None,
        cache: Optional[MarketInfoCache] = None,
        expiration_interval: Optional[int] = None,
        sync_interval: Optional[int] = None,
        currency_code: Optional[str] = None,
        clock: Callable[[], int] = current_timestamp
    ) -> None:
        self.provider = provider
        self.bus = bus or EventBus()
        self.cache = cache or MarketInfoCache()
        self.expiration_interval = expiration_interval or settings.expiration_interval
        self.sync_interval = sync_interval or settings.sync_interval
        self.currency_code = (currency_code or settings.currency_code).upper()
        self._coin_types: List[CoinType] = list(coin_types)
        self._clock = clock
        self._logger = get_logger(__name__)
        self._sync_lock = asyncio.Lock()
        self._running = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def coin_types(self) -> List[CoinType]:
        return list(self._coin_types)

    def set_coin_types(self, coin_types: Sequence[CoinType]) -> None:
        """Replace the watched coins. Takes effect on the next refresh."""
        self._coin_types = list(dict.fromkeys(coin_types))

    def _currency(self, currency_code: Optional[str]) -> str:
        return (currency_code or self.currency_code).upper()

    # ============================================
    # Reads
    # ============================================

    def market_info(self, coin_type: CoinType, currency_code: Optional[str] = None) -> Optional[MarketInfoRecord]:
        """Cached record for a coin, stale or not. Never triggers a fetch."""
        return self.cache.get(coin_type, self._currency(currency_code))

    async def market_info_records_stream(
        self,
        currency_code: Optional[str] = None
    ) -> AsyncGenerator[Dict[CoinType, MarketInfoRecord], None]:
        """
        Stream record mappings for a currency.

        Yields the cached mapping first (when there is one), then every
        mapping produced by a later refresh. Runs until the consumer closes
        the generator.
        """
        currency_code = self._currency(currency_code)
        topic = market_info_topic(currency_code)
        queue = await self.bus.subscribe(topic)

        try:
            entry = self.cache.entry(currency_code)
            if entry is not None:
                yield entry.payload

            while True:
                yield await queue.get()
        finally:
            await self.bus.unsubscribe(topic, queue)

    # ============================================
    # Fetching
    # ============================================

    async def refresh(self, currency_code: Optional[str] = None) -> Dict[CoinType, MarketInfoRecord]:
        """
        Fetch market info for all watched coins and replace the cached mapping.

        Raises:
            MarketInfoError: The provider failed; the cache is left unchanged
        """
        currency_code = self._currency(currency_code)
        records = await self.provider.get_market_info_records(self._coin_types, currency_code)

        mapping = {record.coin_type: record for record in records}
        entry = self.cache.replace(currency_code, mapping, self._clock())
        self._logger.info(
            f"Market info refreshed: {len(mapping)}/{len(self._coin_types)} coins in {currency_code} "
            f"at {to_utc_datetime(entry.timestamp).isoformat()}"
        )

        await self.bus.publish(market_info_topic(currency_code), entry.payload)
        return entry.payload

    async def sync(self, currency_code: Optional[str] = None) -> bool:
        """
        Refresh only when the cached mapping is missing or expired.

        Concurrent calls share one fetch.

        Returns:
            True if a refresh happened
        """
        currency_code = self._currency(currency_code)
        async with self._sync_lock:
            if not self.cache.is_expired(currency_code, self._clock(), self.expiration_interval):
                return False
            await self.refresh(currency_code)
            return True

    # ============================================
    # Background Loop
    # ============================================

    async def start(self) -> None:
        """
        Initialize the provider and launch the background sync loop.

        Raises:
            Exception: Whatever provider.initialize() raised; the manager stays
                       stopped and start() can be retried
        """
        if self._running.is_set():
            return
        self._logger.info(f"Starting market info sync (every {self.sync_interval}s)...")
        await self.provider.initialize()
        self._running.set()
        self._task = asyncio.create_task(self._run(), name="market_info_sync")

    async def stop(self) -> None:
        if not self._running.is_set():
            return
        self._logger.info("Stopping market info sync...")
        self._running.clear()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.provider.shutdown()

    async def _run(self) -> None:
        while self._running.is_set():
            try:
                await self.sync()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._logger.error(f"Market info sync failed, keeping previous data: {e}")
            await asyncio.sleep(self.sync_interval)


def build_market_info_manager(coin_types: Sequence[CoinType] = ()) -> MarketInfoManager:
    """
    Wire the default provider stack from settings.

    CoinGecko serves non-DEX coins and fiat cross rates; Uniswap serves
    Ethereum and ERC20 tokens. The provider catalog is loaded from
    PROVIDER_COINS_FILE when it is set.
    """
    from providers.coingecko import CoinGeckoProvider
    from providers.uniswap import UniswapSubgraphProvider

    if settings.provider_coins_file:
        catalog = ProviderCoinsCatalog.from_json_file(settings.provider_coins_file)
    else:
        catalog = ProviderCoinsCatalog()

    coingecko = CoinGeckoProvider(catalog)
    uniswap = UniswapSubgraphProvider(fiat_provider=coingecko)
    router = MarketInfoRouter(main_provider=coingecko, dex_provider=uniswap)

    return MarketInfoManager(router, coin_types=coin_types)
