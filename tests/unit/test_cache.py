"""
Unit Tests for the Expirable Cache

Run with:
    pytest tests/unit/test_cache.py -v
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.coins import CoinType
from core.schemas import MarketInfoRecord
from storage.cache import ExpirableEntry, MarketInfoCache


def record(coin_type=None, rate="1") -> MarketInfoRecord:
    return MarketInfoRecord(
        coin_type=coin_type or CoinType.bitcoin(), coin_code="BTC", currency_code="USD", rate=Decimal(rate)
    )


class TestExpirableEntry:
    """Tests for the expiry boundary"""

    def test_fresh_just_before_interval(self):
        entry = ExpirableEntry[str](payload="x", timestamp=1000)
        assert not entry.is_expired(now=1299, interval=300)

    def test_stale_at_exactly_interval(self):
        entry = ExpirableEntry[str](payload="x", timestamp=1000)
        assert entry.is_expired(now=1300, interval=300)

    def test_entry_is_immutable(self):
        entry = ExpirableEntry[str](payload="x", timestamp=1000)
        with pytest.raises(ValidationError):
            entry.timestamp = 2000


class TestMarketInfoCache:
    def test_empty_cache(self):
        cache = MarketInfoCache()
        assert cache.get(CoinType.bitcoin(), "USD") is None
        assert cache.is_expired("USD", now=0, interval=300)

    def test_replace_and_read(self):
        cache = MarketInfoCache()
        cache.replace("usd", {CoinType.bitcoin(): record()}, timestamp=1000)

        assert cache.get(CoinType.bitcoin(), "USD").rate == Decimal(1)
        assert cache.get(CoinType.ethereum(), "USD") is None
        assert cache.get(CoinType.bitcoin(), "EUR") is None
        assert not cache.is_expired("USD", now=1100, interval=300)

    def test_replace_swaps_whole_mapping(self):
        cache = MarketInfoCache()
        first = cache.replace("USD", {CoinType.bitcoin(): record()}, timestamp=1000)
        cache.replace("USD", {CoinType.ethereum(): record(CoinType.ethereum(), "2")}, timestamp=2000)

        assert cache.get(CoinType.bitcoin(), "USD") is None
        assert cache.entry("USD").timestamp == 2000
        assert CoinType.bitcoin() in first.payload
