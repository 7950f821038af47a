"""
Provider Identifier Catalog

Maps an internal CoinType to the identifier a given provider expects
(for CoinGecko: its coin id such as "uniswap"), and back.

The catalog is populated out of band, either from a dict or from a JSON file:

    {
      "coins": [
        {"id": "bitcoin", "coingecko": "bitcoin"},
        {"id": "ethereum", "coingecko": "ethereum"},
        {"id": "erc20|0x1f9840a85d5af5bf1d1762f925bdaddc4201f984", "coingecko": "uniswap"}
      ]
    }

A missing mapping is a per-coin condition ("skip this coin for this
provider"), never a batch failure.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from core.coins import CoinType
from core.errors import UnresolvedIdentifierError
from core.logging import get_logger


class InfoProvider(str, Enum):
    """Upstream data sources known to the catalog."""

    COINGECKO = "coingecko"
    UNISWAP = "uniswap"
    DEFIYIELD = "defiyield"


class ProviderCoinsCatalog:
    """
    Two-way mapping between coin types and provider ids.

    Example:
        >>> catalog = ProviderCoinsCatalog({(CoinType.bitcoin(), InfoProvider.COINGECKO): "bitcoin"})
        >>> catalog.provider_id(CoinType.bitcoin(), InfoProvider.COINGECKO)
        'bitcoin'
        >>> catalog.coin_types(InfoProvider.COINGECKO, "bitcoin")
        [CoinType(kind=<CoinKind.BITCOIN: 'bitcoin'>, address=None)]
    """

    def __init__(self, mapping: Optional[Mapping[Tuple[CoinType, InfoProvider], str]] = None):
        self.logger = get_logger(__name__)
        self._ids: Dict[Tuple[CoinType, InfoProvider], str] = {}
        self._reverse: Dict[Tuple[InfoProvider, str], List[CoinType]] = {}

        for (coin_type, provider), external_id in (mapping or {}).items():
            self.add(coin_type, provider, external_id)

    def add(self, coin_type: CoinType, provider: InfoProvider, external_id: str) -> None:
        key = (coin_type, provider)
        previous = self._ids.get(key)
        if previous is not None:
            self._reverse[(provider, previous)].remove(coin_type)

        self._ids[key] = external_id
        self._reverse.setdefault((provider, external_id), []).append(coin_type)

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, str]]) -> "ProviderCoinsCatalog":
        """
        Build a catalog from entries like {"id": "bitcoin", "coingecko": "bitcoin"}.

        Entries whose coin id cannot be parsed are skipped with a warning.
        """
        catalog = cls()
        for entry in entries:
            try:
                coin_type = CoinType.from_id(entry["id"])
            except (KeyError, ValueError) as e:
                catalog.logger.warning(f"Skipping catalog entry {entry!r}: {e}")
                continue

            for provider in InfoProvider:
                external_id = entry.get(provider.value)
                if external_id:
                    catalog.add(coin_type, provider, external_id)
        return catalog

    @classmethod
    def from_json_file(cls, path: str) -> "ProviderCoinsCatalog":
        """Load a catalog from a JSON file with a top-level "coins" array."""
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
        catalog = cls.from_entries(data.get("coins", []))
        catalog.logger.info(f"Loaded {len(catalog)} provider ids from {path}")
        return catalog

    # ============================================
    # Lookups
    # ============================================

    def provider_id(self, coin_type: CoinType, provider: InfoProvider) -> Optional[str]:
        return self._ids.get((coin_type, provider))

    def resolve(self, coin_type: CoinType, provider: InfoProvider) -> str:
        """
        Resolve the provider id of a coin.

        Raises:
            UnresolvedIdentifierError: No mapping exists
        """
        external_id = self.provider_id(coin_type, provider)
        if external_id is None:
            raise UnresolvedIdentifierError(coin_type, provider.value)
        return external_id

    def coin_types(self, provider: InfoProvider, external_id: str) -> List[CoinType]:
        """All coin types sharing a provider id (e.g. a coin bridged to two chains)."""
        return list(self._reverse.get((provider, external_id), []))

    def __len__(self) -> int:
        return len(self._ids)
