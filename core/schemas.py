"""
Normalized Data Schemas

This module defines the Pydantic models produced by every provider. Whether a
record came from the CoinGecko REST API or the Uniswap subgraph, it is
normalized into these models, so the router, the cache and any consumer work
with one set of types.

Models:
    - TimePeriod / ChartType: enumerations for diff periods and chart ranges
    - MarketInfoRecord: per-coin market snapshot (rate, diff, volume, ...)
    - CoinData / CoinMarket: coin description paired with its market record
    - ChartPoint: one sample of a rate time series
    - MarketTicker: one exchange quote for a trading pair
    - CoinMarketDetail: full coin detail (links, platforms, tickers, diffs)
    - LatestRate: lightweight latest price with 24h diff
    - Auditor / AuditReport: security audits of a token contract

All models are frozen: a record is produced fresh on every fetch and never
mutated afterwards.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.coins import CoinType


# ============================================
# Helpers
# ============================================

def to_decimal(value: Any) -> Decimal:
    """Convert a JSON number or numeric string to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def percent_diff(latest: Decimal, base: Decimal) -> Decimal:
    """
    Percentage change from base to latest.

    Returns 0 when base is 0 (no baseline, not a measured change).

    Example:
        >>> percent_diff(Decimal("110"), Decimal("100"))
        Decimal('10')
    """
    if base == 0:
        return Decimal(0)
    return (latest - base) * 100 / base


# ============================================
# Enumerations
# ============================================

class TimePeriod(str, Enum):
    """Named look-back windows used for rate diffs."""

    ALL = "all"
    HOUR_1 = "hour1"
    DAY_START = "dayStart"
    HOUR_24 = "hour24"
    DAY_7 = "day7"
    DAY_14 = "day14"
    DAY_30 = "day30"
    DAY_200 = "day200"
    YEAR_1 = "year1"

    @property
    def label(self) -> str:
        """Suffix used by CoinGecko percentage fields (e.g. "7d")."""
        return _PERIOD_LABELS[self]

    def seconds(self, now: Optional[float] = None) -> int:
        """
        Window length in seconds.

        DAY_START depends on the wall clock (seconds elapsed since UTC
        midnight), so it needs `now`.
        """
        if self is TimePeriod.DAY_START:
            if now is None:
                raise ValueError("DAY_START needs the current timestamp")
            return int(now) % 86400
        return _PERIOD_SECONDS[self]


_PERIOD_LABELS = {
    TimePeriod.ALL: "All",
    TimePeriod.HOUR_1: "1h",
    TimePeriod.DAY_START: "DayStart",
    TimePeriod.HOUR_24: "24h",
    TimePeriod.DAY_7: "7d",
    TimePeriod.DAY_14: "14d",
    TimePeriod.DAY_30: "30d",
    TimePeriod.DAY_200: "200d",
    TimePeriod.YEAR_1: "1y",
}

_PERIOD_SECONDS = {
    TimePeriod.ALL: 0,
    TimePeriod.HOUR_1: 3600,
    TimePeriod.HOUR_24: 86400,
    TimePeriod.DAY_7: 7 * 86400,
    TimePeriod.DAY_14: 14 * 86400,
    TimePeriod.DAY_30: 30 * 86400,
    TimePeriod.DAY_200: 200 * 86400,
    TimePeriod.YEAR_1: 365 * 86400,
}


class ChartType(str, Enum):
    """
    Chart ranges.

    Each range has a resampling interval, a resolution class ("histominute",
    "histohour", "histoday"), the CoinGecko `days` parameter, and the number
    of raw points CoinGecko returns for that many days.
    """

    TODAY = "today"
    DAY = "day"
    WEEK = "week"
    WEEK_2 = "week2"
    MONTH = "month"
    MONTH_BY_DAY = "monthByDay"
    MONTH_3 = "month3"
    HALF_YEAR = "halfYear"
    YEAR = "year"
    YEAR_2 = "year2"

    @property
    def interval_in_seconds(self) -> int:
        return _CHART_PARAMS[self][0]

    @property
    def resource(self) -> str:
        return _CHART_PARAMS[self][1]

    @property
    def coingecko_days(self) -> int:
        return _CHART_PARAMS[self][2]

    @property
    def coingecko_point_count(self) -> int:
        days = self.coingecko_days
        if days <= 1:
            return 288  # 5-minute granularity
        if days <= 90:
            return days * 24  # hourly granularity
        return days


_HOUR = 3600
_DAY = 86400

# interval, resource, days
_CHART_PARAMS = {
    ChartType.TODAY: (30 * 60, "histominute", 1),
    ChartType.DAY: (30 * 60, "histominute", 1),
    ChartType.WEEK: (4 * _HOUR, "histohour", 7),
    ChartType.WEEK_2: (8 * _HOUR, "histohour", 14),
    ChartType.MONTH: (12 * _HOUR, "histohour", 30),
    ChartType.MONTH_BY_DAY: (_DAY, "histoday", 30),
    ChartType.MONTH_3: (_DAY, "histoday", 90),
    ChartType.HALF_YEAR: (3 * _DAY, "histoday", 180),
    ChartType.YEAR: (7 * _DAY, "histoday", 360),
    ChartType.YEAR_2: (14 * _DAY, "histoday", 720),
}


class LinkType(str, Enum):
    WEBSITE = "website"
    REDDIT = "reddit"
    TWITTER = "twitter"
    TELEGRAM = "telegram"
    GITHUB = "github"


class CoinPlatformType(str, Enum):
    """Chains on which CoinGecko reports token contracts we recognize."""

    TRON = "tron"
    ETHEREUM = "ethereum"
    EOS = "eos"
    BINANCE_SMART_CHAIN = "binanceSmartChain"
    BINANCE = "binance"


# ============================================
# Market Info Record
# ============================================

class MarketInfoRecord(BaseModel):
    """
    Unified per-coin market snapshot.

    Attributes:
        coin_type: Coin identity
        coin_code: Display code (e.g., "ETH")
        currency_code: Quote currency (e.g., "USD")
        rate: Current rate in the quote currency
        open_day: Rate at the start of the diff period
        diff: Percentage change from open_day to rate
        volume: 24h volume in the quote currency
        market_cap: Market capitalization
        supply: Circulating supply
        total_supply: Total supply (None when unknown)
        liquidity: Pool-depth value (DEX records only)
        rate_diffs: Percentage diff per requested period

    Invariant:
        diff == 0 whenever open_day == 0. The validator enforces it so that
        no source can report a change against a missing baseline.

    Example:
        >>> MarketInfoRecord(
        ...     coin_type=CoinType.bitcoin(), coin_code="BTC", currency_code="USD",
        ...     rate=Decimal("50000"), open_day=Decimal(0), diff=Decimal("3.2"),
        ... ).diff
        Decimal('0')
    """

    model_config = ConfigDict(frozen=True)

    coin_type: CoinType
    coin_code: str
    currency_code: str
    rate: Decimal
    open_day: Decimal = Decimal(0)
    diff: Decimal = Decimal(0)
    volume: Decimal = Decimal(0)
    market_cap: Decimal = Decimal(0)
    supply: Decimal = Decimal(0)
    total_supply: Optional[Decimal] = None
    liquidity: Optional[Decimal] = None
    rate_diffs: Dict[TimePeriod, Decimal] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def zero_diff_without_baseline(cls, data: Any) -> Any:
        if isinstance(data, dict):
            open_day = data.get("open_day", 0)
            if open_day is None or to_decimal(open_day) == 0:
                data = {**data, "diff": Decimal(0)}
        return data


class CoinData(BaseModel):
    """Coin description as reported by a provider listing."""

    model_config = ConfigDict(frozen=True)

    coin_type: CoinType
    code: str
    title: str


class CoinMarket(BaseModel):
    """A listing entry: coin description plus its market record."""

    model_config = ConfigDict(frozen=True)

    coin_data: CoinData
    record: MarketInfoRecord


class LatestRate(BaseModel):
    """Latest price with its 24h diff (CoinGecko simple/price)."""

    model_config = ConfigDict(frozen=True)

    coin_type: CoinType
    currency_code: str
    rate: Decimal
    diff_24h: Decimal
    timestamp: int


# ============================================
# Charts
# ============================================

class ChartPoint(BaseModel):
    """
    One sample of a rate series.

    Attributes:
        timestamp: Unix time in seconds
        value: Rate at that time
        volume: Volume attached to the sample (daily charts only)
    """

    model_config = ConfigDict(frozen=True)

    timestamp: int
    value: Decimal
    volume: Optional[Decimal] = None


class ChartInfoKey(BaseModel):
    """Identifies one chart: coin, quote currency and range."""

    model_config = ConfigDict(frozen=True)

    coin_type: CoinType
    currency_code: str
    chart_type: ChartType


# ============================================
# Coin Detail
# ============================================

class MarketTicker(BaseModel):
    """
    One exchange quote for a trading pair.

    `base` and `target` are display symbols: a leg equal to the coin's own
    contract address is already replaced by the coin code.
    """

    model_config = ConfigDict(frozen=True)

    base: str
    target: str
    market_name: str
    market_image_url: Optional[str] = None
    rate: Decimal
    volume: Decimal


class CoinMarketDetail(BaseModel):
    """Full coin detail as returned by the aggregator coin endpoint."""

    model_config = ConfigDict(frozen=True)

    coin_type: CoinType
    currency_code: str
    rate: Optional[Decimal] = None
    rate_high_24h: Optional[Decimal] = None
    rate_low_24h: Optional[Decimal] = None
    total_supply: Optional[Decimal] = None
    circulating_supply: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    diluted_market_cap: Optional[Decimal] = None
    market_cap_diff_24h: Optional[Decimal] = None
    description: str = ""
    rate_diffs: Dict[TimePeriod, Dict[str, Decimal]] = Field(default_factory=dict)
    links: Dict[LinkType, str] = Field(default_factory=dict)
    platforms: Dict[CoinPlatformType, str] = Field(default_factory=dict)
    tickers: List[MarketTicker] = Field(default_factory=list)


# ============================================
# Audits
# ============================================

class AuditReport(BaseModel):
    """
    One published security audit of a token contract.

    Attributes:
        name: Report title
        date: Publication date (None when the source date is unparseable)
        issues: Number of technical issues found
        link: URL of the report document
    """

    model_config = ConfigDict(frozen=True)

    name: str
    date: Optional[datetime.date] = None
    issues: int = 0
    link: str


class Auditor(BaseModel):
    """An auditing firm with its reports for one contract."""

    model_config = ConfigDict(frozen=True)

    name: str
    reports: List[AuditReport]
