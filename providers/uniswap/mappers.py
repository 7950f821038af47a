"""
Uniswap Subgraph Response Mappers

Token prices on the subgraph are quoted in ETH (`derivedETH`) and converted to
USD through the bundle's `ethPrice`; a fiat cross rate then converts USD to the
requested quote currency.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Sequence

from core.coins import CoinType
from core.errors import MalformedResponseError
from core.parsing import FieldPolicy, extract_decimal, extract_fields, require_list, require_mapping
from core.schemas import CoinData, CoinMarket, MarketInfoRecord, TimePeriod, percent_diff
from .queries import day_data_alias


WETH_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

TOKEN_FIELDS = {
    "derivedETH": FieldPolicy.REQUIRED,
    "tradeVolumeUSD": FieldPolicy.DEFAULT_ZERO,
    "totalLiquidity": FieldPolicy.DEFAULT_ZERO,
}


def display_code(symbol: str) -> str:
    """Wrapped ether is shown as ETH."""
    return "ETH" if symbol.upper() == "WETH" else symbol


def parse_eth_price(data: Mapping[str, Any]) -> Decimal:
    bundle = require_mapping(data.get("bundle"), "bundle")
    return extract_decimal(bundle, "ethPrice", FieldPolicy.REQUIRED)


# ============================================
# Token Snapshots
# ============================================

@dataclass(frozen=True)
class TokenSnapshot:
    address: str
    symbol: str
    name: str
    derived_eth: Decimal
    volume_usd: Decimal
    total_liquidity: Decimal


@dataclass(frozen=True)
class TokensSnapshot:
    """Token state plus ETH price, either current or as of one block."""

    eth_price: Decimal
    tokens: Sequence[TokenSnapshot]

    def get(self, address: str) -> Optional[TokenSnapshot]:
        for token in self.tokens:
            if token.address == address:
                return token
        return None

    def rate(self, token: TokenSnapshot, fiat_rate: Decimal) -> Decimal:
        return token.derived_eth * self.eth_price * fiat_rate


def parse_tokens_snapshot(data: Mapping[str, Any]) -> TokensSnapshot:
    """
    Map a `tokens {...} bundle {...}` response.

    Raises:
        MalformedResponseError: Missing bundle, token id/symbol, or derivedETH
    """
    tokens: List[TokenSnapshot] = []
    for item in require_list(data.get("tokens"), "tokens"):
        item = require_mapping(item, "token")
        address = item.get("id")
        symbol = item.get("symbol")
        if not isinstance(address, str) or not isinstance(symbol, str):
            raise MalformedResponseError("Token without id or symbol")

        values = extract_fields(item, TOKEN_FIELDS)
        tokens.append(TokenSnapshot(
            address=address.lower(),
            symbol=symbol,
            name=item.get("name") if isinstance(item.get("name"), str) else symbol,
            derived_eth=values["derivedETH"],
            volume_usd=values["tradeVolumeUSD"],
            total_liquidity=values["totalLiquidity"]
        ))

    return TokensSnapshot(eth_price=parse_eth_price(data), tokens=tokens)


# ============================================
# Market Info Records
# ============================================

def map_market_info_records(
    data: Mapping[str, Any],
    coin_types_by_address: Mapping[str, Sequence[CoinType]],
    addresses: Sequence[str],
    currency_code: str,
    fiat_rate: Decimal
) -> List[MarketInfoRecord]:
    """
    Map a batched tokenDayDatas + bundle response.

    Args:
        data: GraphQL `data` object with aliases o0..oN and `bundle`
        coin_types_by_address: Token address -> requested coin types
        addresses: Token addresses in alias order
        currency_code: Quote currency
        fiat_rate: USD -> quote currency rate

    Tokens with no day datum are left out.
    """
    eth_price = parse_eth_price(data)
    records: List[MarketInfoRecord] = []

    for index, address in enumerate(addresses):
        day_datas = data.get(day_data_alias(index))
        if not isinstance(day_datas, list) or not day_datas:
            continue

        day_data = require_mapping(day_datas[0], "token day data")
        token = require_mapping(day_data.get("token"), "token day data token")
        symbol = token.get("symbol") if isinstance(token.get("symbol"), str) else ""

        derived_eth = extract_decimal(token, "derivedETH", FieldPolicy.REQUIRED)
        open_price = extract_decimal(day_data, "priceUSD", FieldPolicy.REQUIRED)

        rate = derived_eth * eth_price * fiat_rate
        open_day = open_price * fiat_rate
        diff = percent_diff(rate, open_day)

        for coin_type in coin_types_by_address.get(address, []):
            records.append(MarketInfoRecord(
                coin_type=coin_type,
                coin_code=display_code(symbol),
                currency_code=currency_code.upper(),
                rate=rate,
                open_day=open_day,
                diff=diff,
                rate_diffs={TimePeriod.HOUR_24: diff}
            ))

    return records


# ============================================
# Coin Markets
# ============================================

def map_coin_markets(
    current: TokensSnapshot,
    day_ago: TokensSnapshot,
    period_ago: Optional[TokensSnapshot],
    period: TimePeriod,
    currency_code: str,
    fiat_rate: Decimal,
    coin_types_for: Callable[[str], Sequence[CoinType]]
) -> List[CoinMarket]:
    """
    Combine current and historical snapshots into markets sorted by liquidity.

    Per token:
        rate       = derivedETH x ethPrice x fiat (current block)
        open_day   = same formula at the 24h block (0 when absent)
        volume     = tradeVolumeUSD growth since the 24h block
        liquidity  = rate x totalLiquidity
        period diff uses `period_ago`, falling back to the 24h snapshot
    """
    markets: List[CoinMarket] = []

    for token in current.tokens:
        rate = current.rate(token, fiat_rate)

        token_24h = day_ago.get(token.address)
        rate_24h = day_ago.rate(token_24h, fiat_rate) if token_24h else Decimal(0)
        volume = (token.volume_usd - token_24h.volume_usd) * fiat_rate if token_24h else Decimal(0)
        diff_24h = percent_diff(rate, rate_24h)

        period_snapshot = day_ago
        token_period = token_24h
        if period_ago is not None and period_ago.get(token.address) is not None:
            period_snapshot = period_ago
            token_period = period_ago.get(token.address)
        rate_period = period_snapshot.rate(token_period, fiat_rate) if token_period else Decimal(0)

        for coin_type in coin_types_for(token.address):
            code = "ETH" if coin_type == CoinType.ethereum() else token.symbol
            record = MarketInfoRecord(
                coin_type=coin_type,
                coin_code=code,
                currency_code=currency_code.upper(),
                rate=rate,
                open_day=rate_24h,
                diff=diff_24h,
                volume=volume,
                liquidity=rate * token.total_liquidity,
                rate_diffs={TimePeriod.HOUR_24: diff_24h, period: percent_diff(rate, rate_period)}
            )
            coin_data = CoinData(coin_type=coin_type, code=code, title=token.name)
            markets.append(CoinMarket(coin_data=coin_data, record=record))

    markets.sort(key=lambda market: market.record.liquidity or Decimal(0), reverse=True)
    return markets
