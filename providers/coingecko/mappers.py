"""
CoinGecko Response Mappers

Pure functions turning decoded CoinGecko payloads into our schemas. No I/O
happens here, so every mapping rule can be tested with plain dicts.

Covered endpoints:
    GET /coins/{id}                      -> map_coin_detail
    GET /coins/markets                   -> map_coin_markets
    GET /coins/{id}/market_chart[/range] -> map_market_chart
    GET /simple/price                    -> map_latest_rates
    GET /exchange_rates                  -> map_fiat_xrate
"""

import re
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from core.coins import CoinType
from core.errors import MalformedResponseError
from core.parsing import FieldPolicy, extract_decimal, extract_fields, parse_decimal, require_list, require_mapping
from core.utils.time import ms_to_seconds
from core.schemas import (
    ChartPoint,
    CoinData,
    CoinMarket,
    CoinMarketDetail,
    CoinPlatformType,
    LatestRate,
    LinkType,
    MarketInfoRecord,
    MarketTicker,
    TimePeriod,
)


# Shifts each resampling boundary earlier so that jittery upstream timestamps
# (a point landing a few seconds before the exact interval) still qualify.
CHART_TIME_TOLERANCE = 180

_SMART_CONTRACT_RE = re.compile(r"^0[xX][0-9a-fA-F]{40}$")

_PLATFORMS = {
    "tron": CoinPlatformType.TRON,
    "ethereum": CoinPlatformType.ETHEREUM,
    "eos": CoinPlatformType.EOS,
    "binance-smart-chain": CoinPlatformType.BINANCE_SMART_CHAIN,
    "binancecoin": CoinPlatformType.BINANCE,
}

MARKET_FIELDS = {
    "current_price": FieldPolicy.DEFAULT_ZERO,
    "price_change_24h": FieldPolicy.OMIT,
    "price_change_percentage_24h": FieldPolicy.DEFAULT_ZERO,
    "total_volume": FieldPolicy.DEFAULT_ZERO,
    "market_cap": FieldPolicy.DEFAULT_ZERO,
    "circulating_supply": FieldPolicy.DEFAULT_ZERO,
    "total_supply": FieldPolicy.OMIT,
}


# ============================================
# Exchange Directory
# ============================================

@dataclass(frozen=True)
class ExchangeDirectory:
    """
    Immutable exchange ordering and artwork used when mapping tickers.

    Attributes:
        priorities: Exchange ids, highest priority first
        images: Exchange id -> image URL

    Example:
        >>> directory = ExchangeDirectory(priorities=("binance", "gdax"))
        >>> directory.priority("gdax"), directory.priority("kraken") == sys.maxsize
        (1, True)
    """

    priorities: Tuple[str, ...] = ()
    images: Mapping[str, str] = field(default_factory=dict)

    def priority(self, exchange_id: str) -> int:
        try:
            return self.priorities.index(exchange_id)
        except ValueError:
            return sys.maxsize

    def image_url(self, exchange_id: str) -> Optional[str]:
        return self.images.get(exchange_id)

    def with_images(self, images: Mapping[str, str]) -> "ExchangeDirectory":
        return ExchangeDirectory(priorities=self.priorities, images=dict(images))


# ============================================
# Coin Detail
# ============================================

def _fiat_value(market_data: Mapping[str, Any], key: str, currency_code: str) -> Optional[Decimal]:
    values = market_data.get(key)
    if not isinstance(values, dict):
        return None
    return parse_decimal(values.get(currency_code))


def is_smart_contract_address(symbol: Optional[str]) -> bool:
    """True for 42-character 0x-prefixed hex strings."""
    return bool(symbol) and _SMART_CONTRACT_RE.match(symbol) is not None


def _first_non_empty(values: Any) -> Optional[str]:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, list):
        return None
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def map_links(links_map: Any) -> Dict[LinkType, str]:
    links: Dict[LinkType, str] = {}
    if not isinstance(links_map, dict):
        return links

    website = _first_non_empty(links_map.get("homepage"))
    if website:
        links[LinkType.WEBSITE] = website

    reddit = _first_non_empty(links_map.get("subreddit_url"))
    if reddit:
        links[LinkType.REDDIT] = reddit

    twitter = _first_non_empty(links_map.get("twitter_screen_name"))
    if twitter:
        links[LinkType.TWITTER] = f"https://twitter.com/{twitter}"

    telegram = _first_non_empty(links_map.get("telegram_channel_identifier"))
    if telegram:
        links[LinkType.TELEGRAM] = f"https://t.me/{telegram}"

    repos = links_map.get("repos_url")
    if isinstance(repos, dict):
        github = _first_non_empty(repos.get("github"))
        if github:
            links[LinkType.GITHUB] = github

    return links


def map_platforms(platforms_map: Any) -> Dict[CoinPlatformType, str]:
    """Recognized platform -> contract address; unknown platform names are dropped."""
    platforms: Dict[CoinPlatformType, str] = {}
    if not isinstance(platforms_map, dict):
        return platforms

    for platform_name, contract_address in platforms_map.items():
        platform_type = _PLATFORMS.get(platform_name)
        if platform_type is not None and isinstance(contract_address, str) and contract_address:
            platforms[platform_type] = contract_address

    return platforms


def map_tickers(
    tickers_array: Any,
    coin_symbol: str,
    contract_addresses: Sequence[str],
    directory: ExchangeDirectory
) -> List[MarketTicker]:
    """
    Filter, normalize and order raw tickers.

    - last rate and volume must both be positive
    - a leg equal to one of the coin's contract addresses shows the coin code
    - tickers with a raw contract address as a leg are dropped
    - ordered by exchange priority (stable, unlisted exchanges last)
    """
    if not isinstance(tickers_array, list):
        return []

    addresses = {address.lower() for address in contract_addresses}
    code = coin_symbol.upper()
    ordered: List[Tuple[int, MarketTicker]] = []

    for ticker_map in tickers_array:
        if not isinstance(ticker_map, dict):
            continue

        base = ticker_map.get("base")
        target = ticker_map.get("target")
        market = ticker_map.get("market")
        if not isinstance(base, str) or not isinstance(target, str) or not isinstance(market, dict):
            continue

        market_name = market.get("name")
        market_id = market.get("identifier")
        last_rate = parse_decimal(ticker_map.get("last"))
        volume = parse_decimal(ticker_map.get("volume"))
        if not market_name or not market_id or last_rate is None or volume is None:
            continue
        if last_rate <= 0 or volume <= 0:
            continue

        if addresses:
            if base.lower() in addresses:
                base = code
            elif target.lower() in addresses:
                target = code

        if is_smart_contract_address(base) or is_smart_contract_address(target):
            continue

        ticker = MarketTicker(
            base=base,
            target=target,
            market_name=market_name,
            market_image_url=directory.image_url(market_id),
            rate=last_rate,
            volume=volume
        )
        ordered.append((directory.priority(market_id), ticker))

    ordered.sort(key=lambda item: item[0])
    return [ticker for _, ticker in ordered]


def map_coin_detail(
    data: Any,
    coin_type: CoinType,
    currency_code: str,
    periods: Sequence[TimePeriod],
    diff_coin_codes: Sequence[str],
    directory: ExchangeDirectory
) -> CoinMarketDetail:
    """
    Map a /coins/{id} payload.

    Args:
        data: Decoded payload
        coin_type: Requested coin
        currency_code: Lowercase quote currency
        periods: Periods to read percentage diffs for
        diff_coin_codes: Lowercase currency codes to read diffs in
        directory: Exchange ordering and images

    Raises:
        MalformedResponseError: Payload or its "market_data" is not an object
    """
    coin_map = require_mapping(data, "coin detail")
    market_data = require_mapping(coin_map.get("market_data"), "coin detail market_data")

    symbol = coin_map.get("symbol") if isinstance(coin_map.get("symbol"), str) else ""

    description = ""
    descriptions = coin_map.get("description")
    if isinstance(descriptions, dict) and isinstance(descriptions.get("en"), str):
        description = descriptions["en"]

    rate_diffs: Dict[TimePeriod, Dict[str, Decimal]] = {}
    for period in periods:
        key = f"price_change_percentage_{period.label}_in_currency"
        rate_diffs[period] = {
            code: _fiat_value(market_data, key, code) or Decimal(0)
            for code in diff_coin_codes
        }

    platforms = map_platforms(coin_map.get("platforms"))
    tickers = map_tickers(coin_map.get("tickers"), symbol, list(platforms.values()), directory)

    return CoinMarketDetail(
        coin_type=coin_type,
        currency_code=currency_code.upper(),
        rate=_fiat_value(market_data, "current_price", currency_code),
        rate_high_24h=_fiat_value(market_data, "high_24h", currency_code),
        rate_low_24h=_fiat_value(market_data, "low_24h", currency_code),
        total_supply=extract_decimal(market_data, "total_supply", FieldPolicy.OMIT),
        circulating_supply=extract_decimal(market_data, "circulating_supply", FieldPolicy.OMIT),
        volume_24h=_fiat_value(market_data, "total_volume", currency_code),
        market_cap=_fiat_value(market_data, "market_cap", currency_code),
        diluted_market_cap=_fiat_value(market_data, "fully_diluted_valuation", currency_code),
        market_cap_diff_24h=extract_decimal(market_data, "market_cap_change_percentage_24h", FieldPolicy.OMIT),
        description=description,
        rate_diffs=rate_diffs,
        links=map_links(coin_map.get("links")),
        platforms=platforms,
        tickers=tickers
    )


# ============================================
# Coin Markets
# ============================================

def map_market_record(
    item: Mapping[str, Any],
    coin_type: CoinType,
    currency_code: str,
    period: TimePeriod
) -> MarketInfoRecord:
    values = extract_fields(item, MARKET_FIELDS)
    rate = values["current_price"]
    diff = values["price_change_percentage_24h"]

    if values["price_change_24h"] is not None:
        open_day = rate - values["price_change_24h"]
    elif diff != -100:
        open_day = rate * 100 / (100 + diff)
    else:
        open_day = Decimal(0)

    if period in (TimePeriod.HOUR_24, TimePeriod.DAY_START):
        period_diff = diff
    else:
        period_diff = extract_decimal(
            item, f"price_change_percentage_{period.label}_in_currency", FieldPolicy.DEFAULT_ZERO
        )

    return MarketInfoRecord(
        coin_type=coin_type,
        coin_code=str(item["symbol"]).upper(),
        currency_code=currency_code.upper(),
        rate=rate,
        open_day=open_day,
        diff=diff,
        volume=values["total_volume"],
        market_cap=values["market_cap"],
        supply=values["circulating_supply"],
        total_supply=values["total_supply"],
        rate_diffs={TimePeriod.HOUR_24: diff, period: period_diff}
    )


def map_coin_markets(
    data: Any,
    currency_code: str,
    period: TimePeriod,
    coin_types_for: Callable[[str], List[CoinType]]
) -> List[CoinMarket]:
    """
    Map a /coins/markets payload.

    Args:
        data: Decoded payload (array of market objects)
        currency_code: Quote currency
        period: Diff period requested from the endpoint
        coin_types_for: CoinGecko id -> coin types to emit a market for
                        (an empty list drops the item)

    Raises:
        MalformedResponseError: Payload is not an array or an item lacks id/symbol
    """
    markets: List[CoinMarket] = []

    for item in require_list(data, "coin markets"):
        item = require_mapping(item, "coin market")
        external_id = item.get("id")
        symbol = item.get("symbol")
        if not isinstance(external_id, str) or not isinstance(symbol, str):
            raise MalformedResponseError("Coin market item without id or symbol")

        title = item.get("name") if isinstance(item.get("name"), str) else symbol.upper()

        for coin_type in coin_types_for(external_id):
            record = map_market_record(item, coin_type, currency_code, period)
            coin_data = CoinData(coin_type=coin_type, code=record.coin_code, title=title)
            markets.append(CoinMarket(coin_data=coin_data, record=record))

    return markets


# ============================================
# Charts & Rates
# ============================================

def map_market_chart(data: Any) -> List[ChartPoint]:
    """
    Map a market_chart payload ({"prices": [[ms, v], ...], "total_volumes": [...]}).

    Volumes are matched to prices by position. Points come back in
    ascending timestamp order.
    """
    chart_map = require_mapping(data, "market chart")
    prices = require_list(chart_map.get("prices"), "market chart prices")
    volumes = chart_map.get("total_volumes")
    if not isinstance(volumes, list):
        volumes = []

    points: List[ChartPoint] = []
    for index, pair in enumerate(prices):
        if not isinstance(pair, list) or len(pair) < 2:
            continue
        timestamp = parse_decimal(pair[0])
        value = parse_decimal(pair[1])
        if timestamp is None or value is None:
            continue

        volume = None
        if index < len(volumes) and isinstance(volumes[index], list) and len(volumes[index]) >= 2:
            volume = parse_decimal(volumes[index][1])

        points.append(ChartPoint(timestamp=ms_to_seconds(timestamp), value=value, volume=volume))

    points.sort(key=lambda point: point.timestamp)
    return points


def resample_chart_points(points: Sequence[ChartPoint], interval: int, include_volume: bool) -> List[ChartPoint]:
    """
    Reduce a dense series to one point per interval.

    A point is emitted when its timestamp reaches the moving boundary; the next
    boundary is the emitted timestamp plus `interval` minus CHART_TIME_TOLERANCE.
    With `include_volume`, each emitted point carries the volume accumulated
    since the previous emitted point (inclusive of itself).
    """
    result: List[ChartPoint] = []
    next_point_time = 0
    aggregated_volume: Optional[Decimal] = None

    for point in points:
        if point.volume is not None:
            aggregated_volume = (aggregated_volume or Decimal(0)) + point.volume

        if point.timestamp >= next_point_time:
            volume = aggregated_volume if include_volume else None
            result.append(ChartPoint(timestamp=point.timestamp, value=point.value, volume=volume))

            next_point_time = point.timestamp + interval - CHART_TIME_TOLERANCE
            aggregated_volume = None

    return result


def nearest_rate(points: Sequence[ChartPoint], timestamp: int) -> Decimal:
    """
    Value of the point closest in time to `timestamp`.

    On equal distance the earlier candidate in the sequence is kept.

    Raises:
        MalformedResponseError: No points
    """
    nearest_diff: Optional[int] = None
    nearest_value: Optional[Decimal] = None

    for point in points:
        time_diff = abs(point.timestamp - timestamp)
        if nearest_diff is None or time_diff < nearest_diff:
            nearest_diff = time_diff
            nearest_value = point.value

    if nearest_value is None:
        raise MalformedResponseError(f"No rates around timestamp {timestamp}")
    return nearest_value


def map_latest_rates(
    data: Any,
    coin_types_by_id: Mapping[str, List[CoinType]],
    currency_code: str,
    timestamp: int
) -> List[LatestRate]:
    """Map a /simple/price payload; coins missing from it are skipped."""
    prices = require_mapping(data, "simple price")
    code = currency_code.lower()
    rates: List[LatestRate] = []

    for external_id, coin_types in coin_types_by_id.items():
        values = prices.get(external_id)
        if not isinstance(values, dict):
            continue
        rate = parse_decimal(values.get(code))
        if rate is None:
            continue
        diff = parse_decimal(values.get(f"{code}_24h_change")) or Decimal(0)

        for coin_type in coin_types:
            rates.append(LatestRate(
                coin_type=coin_type,
                currency_code=currency_code.upper(),
                rate=rate,
                diff_24h=diff,
                timestamp=timestamp
            ))

    return rates


def map_fiat_xrate(data: Any, source_currency: str, target_currency: str) -> Decimal:
    """
    Cross rate from the BTC-denominated /exchange_rates table.

    Raises:
        MalformedResponseError: Either currency is missing from the table
    """
    rates = require_mapping(require_mapping(data, "exchange rates").get("rates"), "exchange rates table")

    def value_of(code: str) -> Decimal:
        entry = rates.get(code.lower())
        if not isinstance(entry, dict):
            raise MalformedResponseError(f"Currency '{code}' missing from exchange rates")
        value = extract_decimal(entry, "value", FieldPolicy.REQUIRED)
        if value == 0:
            raise MalformedResponseError(f"Zero exchange rate for '{code}'")
        return value

    return value_of(target_currency) / value_of(source_currency)


def map_exchange_images(data: Any) -> Dict[str, str]:
    """Map an /exchanges payload to exchange id -> image URL."""
    images: Dict[str, str] = {}
    for item in require_list(data, "exchanges"):
        if isinstance(item, dict) and isinstance(item.get("id"), str) and isinstance(item.get("image"), str):
            images[item["id"]] = item["image"]
    return images
