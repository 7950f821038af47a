"""
CoinGecko Market Info Provider

This module implements MarketInfoProvider (and FiatXRatesProvider) on top of
the CoinGecko v3 REST aggregator API.

CoinGecko serves every non-DEX coin routed by MarketInfoRouter, plus the
richer endpoints no other source provides: coin detail with exchange tickers,
paginated top-market listings, rate charts and historical rates.

Endpoints Used:
    - GET /coins/{id}                           - Coin detail and tickers
    - GET /coins/markets                        - Market listings (paginated)
    - GET /coins/{id}/market_chart              - Rate chart series
    - GET /coins/{id}/market_chart/range        - Rates around a timestamp
    - GET /simple/price                         - Latest rates
    - GET /global/decentralized_finance_defi    - Global DeFi market cap
    - GET /exchange_rates                       - BTC-based fiat rate table
    - GET /exchanges                            - Exchange images

Structure:
    providers/coingecko/
    ├── __init__.py          # This file (CoinGeckoProvider class)
    ├── api_client.py        # REST endpoints over HttpTransport
    └── mappers.py           # Payload -> schema mapping
"""

from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from core.coins import CoinType
from core.config import settings
from core.identifiers import InfoProvider, ProviderCoinsCatalog
from core.logging import logger
from core.parsing import FieldPolicy, extract_decimal, require_mapping
from core.provider_interface import FiatXRatesProvider, MarketInfoProvider
from core.schemas import (
    ChartInfoKey,
    ChartPoint,
    CoinMarket,
    CoinMarketDetail,
    LatestRate,
    MarketInfoRecord,
    TimePeriod,
)
from core.utils.time import current_timestamp
from .api_client import CoinGeckoAPIClient
from .mappers import (
    ExchangeDirectory,
    map_coin_detail,
    map_coin_markets,
    map_exchange_images,
    map_fiat_xrate,
    map_latest_rates,
    map_market_chart,
    nearest_rate,
    resample_chart_points,
)


# Historical rate windows: a narrow range is enough while CoinGecko still
# serves 5-minute data for the timestamp, older data needs a wider one.
NARROW_RATE_WINDOW = 10 * 60
WIDE_RATE_WINDOW = 2 * 60 * 60
NARROW_WINDOW_MAX_AGE = 24 * 60 * 60 - NARROW_RATE_WINDOW


class CoinGeckoProvider(MarketInfoProvider, FiatXRatesProvider):
    """
    CoinGecko aggregator provider.

    Attributes:
        name: Provider identifier ("coingecko")
        catalog: Coin type <-> CoinGecko id mapping
        exchange_directory: Exchange priorities and images for tickers
        coins_per_page: Markets page size
        client: CoinGeckoAPIClient (created in initialize())

    Example:
        >>> provider = CoinGeckoProvider(catalog)
        >>> await provider.initialize()
        >>> top = await provider.fetch_top_markets("USD", TimePeriod.DAY_7, 300)
        >>> await provider.shutdown()
    """

    # ============================================
    # Class Attributes
    # ============================================

    name = "coingecko"

    # ============================================
    # Initialization
    # ============================================

    def __init__(
        self,
        catalog: ProviderCoinsCatalog,
        exchange_directory: Optional[ExchangeDirectory] = None,
        coins_per_page: Optional[int] = None,
        client: Optional[CoinGeckoAPIClient] = None,
        clock: Callable[[], int] = current_timestamp
    ):
        self.catalog = catalog
        self.exchange_directory = exchange_directory or ExchangeDirectory(
            priorities=tuple(settings.exchange_priorities_list)
        )
        self.coins_per_page = coins_per_page or settings.coins_per_page
        self.client = client
        self._clock = clock

        logger.debug(f"CoinGeckoProvider created (page size={self.coins_per_page})")

    async def initialize(self) -> None:
        logger.info("Initializing CoinGecko provider...")
        if self.client is None:
            self.client = CoinGeckoAPIClient()
        await self.client.__aenter__()
        logger.info("✓ CoinGecko provider initialized")

    async def shutdown(self) -> None:
        logger.info("Shutting down CoinGecko provider...")
        if self.client:
            await self.client.__aexit__(None, None, None)
        logger.info("✓ CoinGecko provider shut down")

    # ============================================
    # Coin Detail
    # ============================================

    async def fetch_coin_detail(
        self,
        coin_type: CoinType,
        currency_code: str,
        periods: Sequence[TimePeriod],
        diff_coin_codes: Sequence[str]
    ) -> CoinMarketDetail:
        """
        Fetch full coin detail.

        Args:
            coin_type: Coin to describe
            currency_code: Quote currency for rates, volume and caps
            periods: Periods to report percentage diffs for
            diff_coin_codes: Currencies the diffs are reported in (e.g. ["USD", "BTC"])

        Raises:
            UnresolvedIdentifierError: Coin has no CoinGecko id
            MalformedResponseError: Payload lacks "market_data"
        """
        external_id = self.catalog.resolve(coin_type, InfoProvider.COINGECKO)
        data = await self.client.get_coin(external_id)

        return map_coin_detail(
            data,
            coin_type,
            currency_code.lower(),
            periods,
            [code.lower() for code in diff_coin_codes],
            self.exchange_directory
        )

    # ============================================
    # Markets
    # ============================================

    @staticmethod
    def _price_change_param(period: TimePeriod) -> Optional[str]:
        # 24h diffs are always part of the payload; DayStart has no CoinGecko field.
        if period in (TimePeriod.HOUR_24, TimePeriod.DAY_START):
            return None
        return period.label

    def _top_coin_types(self, external_id: str) -> List[CoinType]:
        coin_types = self.catalog.coin_types(InfoProvider.COINGECKO, external_id)
        return coin_types[:1] or [CoinType.unsupported(external_id)]

    async def fetch_top_markets(
        self,
        currency_code: str,
        period: TimePeriod,
        item_count: int
    ) -> List[CoinMarket]:
        """
        Fetch the top `item_count` coins by market cap.

        Pages of `coins_per_page` are requested sequentially. The first page
        asks for min(page size, item_count) items, later pages for a full page
        so page offsets stay aligned. A short page means the upstream list is
        exhausted and ends the loop.

        Coins missing from the catalog are returned as `unsupported` coin types.

        Returns:
            At most `item_count` markets, in market cap order
        """
        per_page = self.coins_per_page
        price_change = self._price_change_param(period)

        markets: List[CoinMarket] = []
        remaining = item_count
        page = 1

        while remaining > 0:
            expected = min(per_page, remaining)
            page_size = per_page if page > 1 else expected

            data = await self.client.get_markets(
                currency_code, page_size, page, price_change_percentage=price_change
            )
            page_markets = map_coin_markets(data, currency_code, period, self._top_coin_types)
            delivered = len(page_markets)

            if delivered == 0:
                break

            if remaining <= per_page and remaining <= delivered:
                markets.extend(page_markets[:remaining])
                break

            markets.extend(page_markets)
            next_remaining = remaining + max(0, expected - delivered) - per_page

            if delivered < page_size:
                logger.debug(f"Short markets page {page} ({delivered}/{page_size}), upstream list exhausted")
                break

            remaining = next_remaining
            page += 1

        logger.debug(f"Fetched {len(markets)}/{item_count} top markets in {page} page(s)")
        return markets

    async def fetch_markets(
        self,
        currency_code: str,
        period: TimePeriod,
        coin_types: Sequence[CoinType]
    ) -> List[CoinMarket]:
        """
        Fetch markets for specific coins.

        Coins without a CoinGecko id are excluded. Coin types sharing one id
        each get their own market. Ids are requested in chunks of
        `coins_per_page`, one request after another, since CoinGecko never
        returns more than one page per call.
        """
        coin_types_by_id = self._coin_types_by_id(coin_types)
        if not coin_types_by_id:
            return []

        external_ids = list(coin_types_by_id.keys())
        price_change = self._price_change_param(period)
        per_page = self.coins_per_page

        markets: List[CoinMarket] = []
        for start in range(0, len(external_ids), per_page):
            chunk = external_ids[start:start + per_page]
            data = await self.client.get_markets(
                currency_code,
                per_page=per_page,
                ids=chunk,
                price_change_percentage=price_change
            )
            markets.extend(map_coin_markets(
                data, currency_code, period, lambda external_id: coin_types_by_id.get(external_id, [])
            ))

        logger.debug(f"Fetched {len(markets)} markets for {len(external_ids)} CoinGecko ids")
        return markets

    async def get_market_info_records(
        self,
        coin_types: Sequence[CoinType],
        currency_code: str
    ) -> List[MarketInfoRecord]:
        markets = await self.fetch_markets(currency_code, TimePeriod.HOUR_24, coin_types)
        return [market.record for market in markets]

    def _coin_types_by_id(self, coin_types: Sequence[CoinType]) -> Dict[str, List[CoinType]]:
        coin_types_by_id: Dict[str, List[CoinType]] = {}
        for coin_type in coin_types:
            external_id = self.catalog.provider_id(coin_type, InfoProvider.COINGECKO)
            if external_id is None:
                logger.debug(f"No CoinGecko id for {coin_type}, skipping")
                continue
            bucket = coin_types_by_id.setdefault(external_id, [])
            if coin_type not in bucket:
                bucket.append(coin_type)
        return coin_types_by_id

    # ============================================
    # Charts & Historical Rates
    # ============================================

    async def fetch_chart_points(self, key: ChartInfoKey) -> List[ChartPoint]:
        """
        Fetch a rate chart.

        A series shorter than the chart type's expected point count is
        returned as is; otherwise it is resampled to the chart interval, with
        aggregated volumes for daily charts.
        """
        chart_type = key.chart_type
        external_id = self.catalog.resolve(key.coin_type, InfoProvider.COINGECKO)

        data = await self.client.get_market_chart(external_id, key.currency_code, chart_type.coingecko_days)
        points = map_market_chart(data)

        if len(points) < chart_type.coingecko_point_count:
            return points

        return resample_chart_points(
            points,
            chart_type.interval_in_seconds,
            include_volume=chart_type.resource == "histoday"
        )

    async def fetch_historical_rate(self, coin_type: CoinType, currency_code: str, timestamp: int) -> Decimal:
        """
        Rate of a coin closest to `timestamp`.

        Raises:
            UnresolvedIdentifierError: Coin has no CoinGecko id
            MalformedResponseError: No rates in the searched window
        """
        external_id = self.catalog.resolve(coin_type, InfoProvider.COINGECKO)

        if self._clock() - timestamp <= NARROW_WINDOW_MAX_AGE:
            window = NARROW_RATE_WINDOW
        else:
            window = WIDE_RATE_WINDOW

        data = await self.client.get_market_chart_range(
            external_id, currency_code, timestamp - window, timestamp + window
        )
        return nearest_rate(map_market_chart(data), timestamp)

    # ============================================
    # Latest Rates & Global Data
    # ============================================

    async def fetch_latest_rates(self, coin_types: Sequence[CoinType], currency_code: str) -> List[LatestRate]:
        coin_types_by_id = self._coin_types_by_id(coin_types)
        if not coin_types_by_id:
            return []

        data = await self.client.get_simple_price(list(coin_types_by_id.keys()), currency_code)
        return map_latest_rates(data, coin_types_by_id, currency_code, self._clock())

    async def fetch_global_defi_market_cap(self, currency_code: str) -> Decimal:
        """
        Global DeFi market cap in `currency_code`.

        CoinGecko reports it in USD only; other currencies are converted with
        the fiat cross rate.
        """
        data = require_mapping(await self.client.get_global_defi(), "global defi")
        defi_data = require_mapping(data.get("data"), "global defi data")
        market_cap = extract_decimal(defi_data, "defi_market_cap", FieldPolicy.REQUIRED)

        if currency_code.upper() == "USD":
            return market_cap
        return market_cap * await self.latest_fiat_xrate("USD", currency_code)

    async def latest_fiat_xrate(self, source_currency: str, target_currency: str) -> Decimal:
        if source_currency.upper() == target_currency.upper():
            return Decimal(1)

        data = await self.client.get_exchange_rates()
        return map_fiat_xrate(data, source_currency, target_currency)

    async def fetch_exchange_images(self) -> Dict[str, str]:
        data = await self.client.get_exchanges()
        return map_exchange_images(data)

    async def load_exchange_images(self) -> None:
        """Refresh the ticker image map from /exchanges."""
        images = await self.fetch_exchange_images()
        self.exchange_directory = self.exchange_directory.with_images(images)
        logger.info(f"Loaded {len(images)} exchange images")


__all__ = ["CoinGeckoProvider", "CoinGeckoAPIClient", "ExchangeDirectory"]
