"""
Coin Identity

CoinType is a closed tagged variant describing which chain a coin lives on
and, for tokens, its contract address (or BEP2 symbol). Providers route on the
kind with `match` statements, so adding a kind means revisiting every router.

Coin types have a compact string form used by identifier catalogs:

    "bitcoin"                      -> CoinType(kind=CoinKind.BITCOIN)
    "erc20|0x1f98...f984"          -> CoinType(kind=CoinKind.ERC20, address="0x1f98...f984")
    "unsupported|some-gecko-id"    -> CoinType(kind=CoinKind.UNSUPPORTED, address="some-gecko-id")
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator


class CoinKind(str, Enum):
    """Variant tag of a CoinType."""

    BITCOIN = "bitcoin"
    BITCOIN_CASH = "bitcoinCash"
    LITECOIN = "litecoin"
    DASH = "dash"
    ZCASH = "zcash"
    ETHEREUM = "ethereum"
    BINANCE_SMART_CHAIN = "binanceSmartChain"
    ERC20 = "erc20"
    BEP20 = "bep20"
    BEP2 = "bep2"
    UNSUPPORTED = "unsupported"


# Kinds that carry a payload in `address`
ADDRESSED_KINDS = frozenset({
    CoinKind.ERC20,
    CoinKind.BEP20,
    CoinKind.BEP2,
    CoinKind.UNSUPPORTED,
})

# Payloads compared case-insensitively (hex contract addresses)
_CONTRACT_KINDS = frozenset({CoinKind.ERC20, CoinKind.BEP20})


class CoinType(BaseModel):
    """
    Chain-scoped identity of a tradable asset.

    Attributes:
        kind: Variant tag
        address: Contract address (erc20/bep20), BEP2 symbol, or the
                 provider id of an unsupported coin; None for native coins

    Example:
        >>> CoinType.erc20("0x1F9840A85D5aF5bf1D1762F925BDADdC4201F984")
        CoinType(kind=<CoinKind.ERC20: 'erc20'>, address='0x1f9840a85d5af5bf1d1762f925bdaddc4201f984')
        >>> CoinType.ethereum() == CoinType.from_id("ethereum")
        True
    """

    model_config = ConfigDict(frozen=True)

    kind: CoinKind
    address: Optional[str] = None

    @field_validator("address")
    @classmethod
    def normalize_address(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if info.data.get("kind") in _CONTRACT_KINDS:
            v = v.lower()
        return v

    @model_validator(mode="after")
    def check_payload(self) -> "CoinType":
        if self.kind in ADDRESSED_KINDS:
            if not self.address:
                raise ValueError(f"Coin kind '{self.kind.value}' requires an address")
        elif self.address is not None:
            raise ValueError(f"Coin kind '{self.kind.value}' takes no address")
        return self

    # ============================================
    # Constructors
    # ============================================

    @classmethod
    def bitcoin(cls) -> "CoinType":
        return cls(kind=CoinKind.BITCOIN)

    @classmethod
    def ethereum(cls) -> "CoinType":
        return cls(kind=CoinKind.ETHEREUM)

    @classmethod
    def binance_smart_chain(cls) -> "CoinType":
        return cls(kind=CoinKind.BINANCE_SMART_CHAIN)

    @classmethod
    def erc20(cls, address: str) -> "CoinType":
        return cls(kind=CoinKind.ERC20, address=address)

    @classmethod
    def bep20(cls, address: str) -> "CoinType":
        return cls(kind=CoinKind.BEP20, address=address)

    @classmethod
    def bep2(cls, symbol: str) -> "CoinType":
        return cls(kind=CoinKind.BEP2, address=symbol)

    @classmethod
    def unsupported(cls, coin_id: str) -> "CoinType":
        return cls(kind=CoinKind.UNSUPPORTED, address=coin_id)

    @classmethod
    def from_id(cls, coin_id: str) -> "CoinType":
        """
        Parse the compact string form ("kind" or "kind|payload").

        Raises:
            ValueError: Unknown kind or missing/extra payload
        """
        kind, _, payload = coin_id.partition("|")
        return cls(kind=CoinKind(kind), address=payload or None)

    # ============================================
    # Properties
    # ============================================

    @property
    def id(self) -> str:
        """Compact string form, inverse of from_id()."""
        if self.address is None:
            return self.kind.value
        return f"{self.kind.value}|{self.address}"

    def __str__(self) -> str:
        return self.id
