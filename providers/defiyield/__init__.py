"""
DefiYield Audit Provider

Looks up published security audits of ERC20 and BEP20 token contracts through
the DefiYield API. It is not a market info source and is not routed by
MarketInfoRouter; callers use it directly next to the market providers.

Endpoints Used:
    - POST /audit/address    - Partner audits for a list of contract addresses

Authentication:
    An API key is optional. When DEFIYIELD_API_KEY is set it is sent as a
    bearer token.

Structure:
    providers/defiyield/
    ├── __init__.py          # This file (DefiYieldProvider class)
    └── mappers.py           # Payload -> Auditor mapping
"""

from typing import Dict, List, Optional

from core.coins import CoinKind, CoinType
from core.config import settings
from core.errors import UnsupportedCoinTypeError
from core.identifiers import InfoProvider
from core.logging import logger
from core.schemas import Auditor
from core.transport import HttpTransport
from .mappers import map_auditors


def contract_address(coin_type: CoinType) -> str:
    """
    Contract address DefiYield knows a coin by.

    Raises:
        UnsupportedCoinTypeError: Coin is not an ERC20 or BEP20 token
    """
    match coin_type.kind:
        case CoinKind.ERC20 | CoinKind.BEP20:
            return coin_type.address
        case _:
            raise UnsupportedCoinTypeError(coin_type, DefiYieldProvider.name)


class DefiYieldProvider:
    """
    DefiYield audit reports provider.

    Attributes:
        name: Provider identifier ("defiyield")
        base_url: DefiYield API base URL
        api_key: Bearer token, or None for anonymous access
        transport: HttpTransport (created in initialize() when not given)

    Example:
        >>> defiyield = DefiYieldProvider()
        >>> await defiyield.initialize()
        >>> auditors = await defiyield.fetch_audit_reports(CoinType.erc20(UNI_ADDRESS))
        >>> await defiyield.shutdown()
    """

    name = InfoProvider.DEFIYIELD.value

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[HttpTransport] = None
    ):
        self.base_url = (base_url or settings.defiyield_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else (settings.defiyield_api_key or None)
        self.transport = transport
        self._owns_transport = transport is None

    async def initialize(self) -> None:
        logger.info("Initializing DefiYield provider...")
        if self.transport is None:
            self.transport = HttpTransport(provider=self.name, timeout=settings.request_timeout)
            await self.transport.__aenter__()
        logger.info("✓ DefiYield provider initialized")

    async def shutdown(self) -> None:
        logger.info("Shutting down DefiYield provider...")
        if self.transport and self._owns_transport:
            await self.transport.__aexit__(None, None, None)
            self.transport = None
        logger.info("✓ DefiYield provider shut down")

    def _headers(self) -> Optional[Dict[str, str]]:
        if not self.api_key:
            return None
        return {"Authorization": f"Bearer {self.api_key}"}

    async def fetch_audit_reports(self, coin_type: CoinType) -> List[Auditor]:
        """
        Audits of a token contract, grouped by auditor.

        Args:
            coin_type: ERC20 or BEP20 token

        Returns:
            List[Auditor]: Empty when DefiYield knows no audit of the contract

        Raises:
            UnsupportedCoinTypeError: Coin is not an ERC20 or BEP20 token (no request is made)
            TransportError: HTTP failure
            MalformedResponseError: An audit lacks a required field
        """
        address = contract_address(coin_type)

        if self.transport is None:
            raise RuntimeError("DefiYield provider not initialized. Call initialize() first.")

        data = await self.transport.post(
            f"{self.base_url}/audit/address",
            {"addresses": [address]},
            headers=self._headers()
        )
        auditors = map_auditors(data)
        logger.debug(f"Fetched {len(auditors)} auditor(s) for {coin_type}")
        return auditors


__all__ = ["DefiYieldProvider", "contract_address"]
