"""
Provider Interface: Abstract Contract for Market Data Sources

Every upstream source (CoinGecko REST API, Uniswap subgraph) implements
MarketInfoProvider. The router and the sync service only talk to this
interface, so a source can be swapped or faked without touching them.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Sequence

from core.coins import CoinType
from core.schemas import MarketInfoRecord


class MarketInfoProvider(ABC):
    """
    Abstract Base Class for market info sources.

    Class Attributes:
        name: Unique provider identifier (lowercase)

    Abstract Methods:
        - get_market_info_records: Market records for a batch of coins

    Optional Methods:
        - initialize / shutdown: Open and close network sessions
    """

    name: str

    @abstractmethod
    async def get_market_info_records(
        self,
        coin_types: Sequence[CoinType],
        currency_code: str
    ) -> List[MarketInfoRecord]:
        """
        Fetch one market record per servable coin.

        Coins the provider cannot resolve are left out of the result; they
        never fail the batch.

        Args:
            coin_types: Coins to fetch
            currency_code: Quote currency (e.g., "USD")

        Returns:
            List[MarketInfoRecord]: Records in no particular order

        Raises:
            TransportError: Upstream request failed
            MalformedResponseError: Upstream payload lacks required fields
        """
        ...

    async def initialize(self) -> None:
        """Open network sessions. Default implementation does nothing."""
        pass

    async def shutdown(self) -> None:
        """Close network sessions. Default implementation does nothing."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"


class FiatXRatesProvider(ABC):
    """Source of fiat cross rates (e.g. USD -> EUR)."""

    @abstractmethod
    async def latest_fiat_xrate(self, source_currency: str, target_currency: str) -> Decimal:
        """
        Price of one unit of source_currency in target_currency.

        Raises:
            MalformedResponseError: A currency is unknown to the provider
        """
        ...
