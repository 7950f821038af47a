"""
CoinGecko REST API Client

Thin endpoint layer over the shared HttpTransport: builds paths and query
parameters and returns decoded JSON. Mapping into schemas lives in
`providers.coingecko.mappers`; orchestration (pagination, resampling, window
selection) lives in CoinGeckoProvider.

API Documentation:
    https://www.coingecko.com/en/api/documentation

Note: aiohttp only accepts str/int/float query values, so boolean flags are
sent as the literal strings "true"/"false".
"""

from typing import Any, Dict, List, Optional

from core.config import settings
from core.logging import get_logger
from core.transport import HttpTransport


class CoinGeckoAPIClient:
    """
    Async client for the CoinGecko v3 REST API.

    Example:
        >>> async with CoinGeckoAPIClient() as client:
        ...     coin = await client.get_coin("bitcoin")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[HttpTransport] = None
    ):
        self.base_url = (base_url or settings.coingecko_base_url).rstrip("/")
        self.transport = transport
        self._owns_transport = transport is None
        self.logger = get_logger(__name__)

    async def __aenter__(self):
        if self.transport is None:
            self.transport = HttpTransport(
                provider="coingecko",
                timeout=settings.request_timeout,
                request_interval=settings.request_interval
            )
        if self._owns_transport:
            await self.transport.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_transport and self.transport:
            await self.transport.__aexit__(exc_type, exc_val, exc_tb)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.transport is None:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")
        return await self.transport.get(f"{self.base_url}{path}", params=params)

    # ============================================
    # Endpoints
    # ============================================

    async def get_coin(self, external_id: str) -> Any:
        """GET /coins/{id} with tickers, without localization and developer data."""
        params = {
            "localization": "false",
            "tickers": "true",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
            "sparkline": "false",
        }
        return await self._get(f"/coins/{external_id}", params)

    async def get_markets(
        self,
        currency_code: str,
        per_page: int,
        page: int = 1,
        ids: Optional[List[str]] = None,
        price_change_percentage: Optional[str] = None
    ) -> Any:
        """
        GET /coins/markets ordered by market cap.

        Args:
            currency_code: Quote currency (lowercased for the API)
            per_page: Page size (API maximum 250)
            page: 1-based page number
            ids: Restrict to these CoinGecko ids
            price_change_percentage: Extra diff window (e.g. "7d")
        """
        params: Dict[str, Any] = {
            "vs_currency": currency_code.lower(),
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
        }
        if ids:
            params["ids"] = ",".join(ids)
        if price_change_percentage:
            params["price_change_percentage"] = price_change_percentage
        return await self._get("/coins/markets", params)

    async def get_market_chart(self, external_id: str, currency_code: str, days: int) -> Any:
        params = {"vs_currency": currency_code.lower(), "days": days}
        return await self._get(f"/coins/{external_id}/market_chart", params)

    async def get_market_chart_range(
        self,
        external_id: str,
        currency_code: str,
        from_timestamp: int,
        to_timestamp: int
    ) -> Any:
        params = {
            "vs_currency": currency_code.lower(),
            "from": from_timestamp,
            "to": to_timestamp,
        }
        return await self._get(f"/coins/{external_id}/market_chart/range", params)

    async def get_simple_price(self, ids: List[str], currency_code: str) -> Any:
        params = {
            "ids": ",".join(ids),
            "vs_currencies": currency_code.lower(),
            "include_24hr_change": "true",
        }
        return await self._get("/simple/price", params)

    async def get_global_defi(self) -> Any:
        return await self._get("/global/decentralized_finance_defi")

    async def get_exchange_rates(self) -> Any:
        return await self._get("/exchange_rates")

    async def get_exchanges(self, per_page: int = 250, page: int = 1) -> Any:
        return await self._get("/exchanges", {"per_page": per_page, "page": page})
