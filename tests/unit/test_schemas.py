"""
Unit Tests for Normalized Schemas

Run with:
    pytest tests/unit/test_schemas.py -v
"""

from decimal import Decimal

import pytest

from core.coins import CoinType
from core.schemas import ChartType, MarketInfoRecord, TimePeriod, percent_diff


def make_record(**overrides) -> MarketInfoRecord:
    values = dict(
        coin_type=CoinType.bitcoin(),
        coin_code="BTC",
        currency_code="USD",
        rate=Decimal("50000"),
    )
    values.update(overrides)
    return MarketInfoRecord(**values)


class TestMarketInfoRecord:
    """Tests for the diff/open_day invariant"""

    def test_diff_zeroed_without_open_day(self):
        record = make_record(open_day=Decimal(0), diff=Decimal("3.2"))
        assert record.diff == 0

    def test_diff_kept_with_open_day(self):
        record = make_record(open_day=Decimal("48000"), diff=Decimal("4.1666"))
        assert record.diff == Decimal("4.1666")

    def test_defaults(self):
        record = make_record()
        assert record.volume == 0
        assert record.market_cap == 0
        assert record.total_supply is None
        assert record.liquidity is None
        assert record.rate_diffs == {}


class TestPercentDiff:
    def test_positive_change(self):
        assert percent_diff(Decimal("110"), Decimal("100")) == Decimal("10")

    def test_zero_base_is_zero(self):
        assert percent_diff(Decimal("110"), Decimal("0")) == 0


class TestTimePeriod:
    def test_labels_match_coingecko_suffixes(self):
        assert TimePeriod.HOUR_1.label == "1h"
        assert TimePeriod.DAY_7.label == "7d"
        assert TimePeriod.YEAR_1.label == "1y"

    def test_seconds(self):
        assert TimePeriod.HOUR_24.seconds() == 86400
        assert TimePeriod.DAY_14.seconds() == 14 * 86400

    def test_day_start_needs_now(self):
        with pytest.raises(ValueError):
            TimePeriod.DAY_START.seconds()
        assert TimePeriod.DAY_START.seconds(now=86400 * 10 + 3600) == 3600


class TestChartType:
    def test_expected_point_counts(self):
        assert ChartType.DAY.coingecko_point_count == 288
        assert ChartType.WEEK.coingecko_point_count == 7 * 24
        assert ChartType.MONTH_3.coingecko_point_count == 90 * 24
        assert ChartType.YEAR.coingecko_point_count == 360

    def test_resources(self):
        assert ChartType.TODAY.resource == "histominute"
        assert ChartType.MONTH.resource == "histohour"
        assert ChartType.MONTH_BY_DAY.resource == "histoday"
        assert ChartType.MONTH_BY_DAY.interval_in_seconds == 86400
