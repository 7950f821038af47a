"""
Unit Tests for Coin Identity

These tests verify that CoinType:
- Normalizes contract addresses to lowercase
- Enforces which kinds carry an address
- Round-trips through its compact string id
- Is usable as a dict key (frozen, hashable)

Run with:
    pytest tests/unit/test_coins.py -v
"""

import pytest
from pydantic import ValidationError

from core.coins import CoinKind, CoinType


UNI = "0x1f9840a85d5af5bf1d1762f925bdaddc4201f984"


class TestCoinTypeConstruction:
    """Tests for constructors and validation"""

    def test_erc20_address_is_lowercased(self):
        coin = CoinType.erc20("0x1F9840A85D5aF5bf1D1762F925BDADdC4201F984")
        assert coin.address == UNI

    def test_bep2_symbol_keeps_case(self):
        coin = CoinType.bep2("BNB")
        assert coin.address == "BNB"

    def test_addressed_kind_without_address_rejected(self):
        with pytest.raises(ValidationError):
            CoinType(kind=CoinKind.ERC20)

    def test_native_kind_with_address_rejected(self):
        with pytest.raises(ValidationError):
            CoinType(kind=CoinKind.BITCOIN, address="0xabc")

    def test_coin_type_is_frozen(self):
        coin = CoinType.bitcoin()
        with pytest.raises(ValidationError):
            coin.kind = CoinKind.ETHEREUM


class TestCoinTypeIdentity:
    """Tests for equality, hashing and string ids"""

    def test_equal_addresses_in_different_case_are_equal(self):
        assert CoinType.erc20(UNI.upper().replace("0X", "0x")) == CoinType.erc20(UNI)

    def test_hashable_as_dict_key(self):
        mapping = {CoinType.erc20(UNI): "uniswap"}
        assert mapping[CoinType.erc20(UNI)] == "uniswap"

    @pytest.mark.parametrize("coin", [
        CoinType.bitcoin(),
        CoinType.ethereum(),
        CoinType.binance_smart_chain(),
        CoinType.erc20(UNI),
        CoinType.bep20(UNI),
        CoinType.bep2("BUSD-BD1"),
        CoinType.unsupported("some-gecko-id"),
    ])
    def test_id_round_trip(self, coin):
        assert CoinType.from_id(coin.id) == coin

    def test_id_format(self):
        assert CoinType.bitcoin().id == "bitcoin"
        assert CoinType.erc20(UNI).id == f"erc20|{UNI}"
        assert str(CoinType.ethereum()) == "ethereum"

    def test_from_id_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            CoinType.from_id("dogecoin")
