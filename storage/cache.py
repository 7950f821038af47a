"""
Expirable Market Info Cache

Entries are immutable: a successful fetch produces a new ExpirableEntry that
replaces the previous one in a single assignment, and a failed fetch leaves
the previous entry untouched. Readers therefore never see a half-written
mapping and need no lock.
"""

from typing import Dict, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from core.coins import CoinType
from core.schemas import MarketInfoRecord


T = TypeVar("T")


class ExpirableEntry(BaseModel, Generic[T]):
    """
    Payload with the Unix time it was fetched at.

    Example:
        >>> entry = ExpirableEntry[int](payload=1, timestamp=1000)
        >>> entry.is_expired(now=1299, interval=300), entry.is_expired(now=1300, interval=300)
        (False, True)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    payload: T
    timestamp: int

    def is_expired(self, now: int, interval: int) -> bool:
        return now - self.timestamp >= interval


MarketInfoMap = Dict[CoinType, MarketInfoRecord]


class MarketInfoCache:
    """Latest market info mapping per quote currency."""

    def __init__(self) -> None:
        self._entries: Dict[str, ExpirableEntry[MarketInfoMap]] = {}

    def entry(self, currency_code: str) -> Optional[ExpirableEntry[MarketInfoMap]]:
        return self._entries.get(currency_code.upper())

    def get(self, coin_type: CoinType, currency_code: str) -> Optional[MarketInfoRecord]:
        entry = self.entry(currency_code)
        if entry is None:
            return None
        return entry.payload.get(coin_type)

    def is_expired(self, currency_code: str, now: int, interval: int) -> bool:
        """A currency with no entry counts as expired."""
        entry = self.entry(currency_code)
        return entry is None or entry.is_expired(now, interval)

    def replace(self, currency_code: str, records: Mapping[CoinType, MarketInfoRecord], timestamp: int) -> ExpirableEntry[MarketInfoMap]:
        entry = ExpirableEntry[MarketInfoMap](payload=dict(records), timestamp=timestamp)
        self._entries = {**self._entries, currency_code.upper(): entry}
        return entry

    def clear(self) -> None:
        self._entries = {}
