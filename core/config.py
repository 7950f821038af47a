"""
Configuration Management Module

This module loads and validates the market info engine configuration from
environment variables (.env file) using Pydantic Settings.

Key Features:
- Upstream endpoints (CoinGecko REST API, Uniswap and ethereum-blocks subgraphs, DefiYield audits)
- Staleness control (expiration interval, background sync interval)
- Transport behaviour (timeout, spacing between requests)
- Exchange priority table used to order coin detail tickers

Usage:
    from core.config import settings

    print(settings.coingecko_base_url)
    print(settings.exchange_priorities_list)  # Returns a list of exchange ids
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


DEFAULT_EXCHANGE_PRIORITIES = ",".join([
    "binance",
    "binance_us",
    "binance_dex",
    "binance_dex_mini",
    "uniswap_v1",
    "uniswap",
    "gdax",
    "sushiswap",
    "huobi",
    "huobi_thailand",
    "huobi_id",
    "huobi_korea",
    "huobi_japan",
    "ftx_spot",
    "ftx_us",
    "one_inch",
    "one_inch_liquidity_protocol",
    "one_inch_liquidity_protocol_bsc",
])


class Settings(BaseSettings):
    """
    Engine Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        coingecko_base_url: Base URL for the CoinGecko v3 REST API
        uniswap_subgraph_url: GraphQL endpoint of the Uniswap v2 subgraph
        eth_blocks_subgraph_url: GraphQL endpoint of the ethereum blocks subgraph
        defiyield_base_url: Base URL for the DefiYield audit API
        defiyield_api_key: Optional DefiYield API key
        coins_per_page: Page size used by the CoinGecko markets endpoint
        expiration_interval: Seconds after which cached market info is stale
        sync_interval: Seconds between background sync attempts
        request_timeout: Timeout for HTTP requests in seconds
        request_interval: Minimum seconds between two requests to one host
        currency_code: Default quote currency
        provider_coins_file: Optional JSON catalog of provider coin ids
        exchange_priorities: Comma-separated exchange ids, highest priority first
        log_level: Logging level
    """

    # ============================================
    # Upstream Endpoints
    # ============================================

    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="CoinGecko v3 REST API base URL"
    )

    uniswap_subgraph_url: str = Field(
        default="https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v2",
        description="Uniswap v2 subgraph GraphQL endpoint"
    )

    eth_blocks_subgraph_url: str = Field(
        default="https://api.thegraph.com/subgraphs/name/blocklytics/ethereum-blocks",
        description="Ethereum blocks subgraph GraphQL endpoint"
    )

    defiyield_base_url: str = Field(
        default="https://api.safe.defiyield.app",
        description="DefiYield audit API base URL"
    )

    defiyield_api_key: str = Field(
        default="",
        description="Optional DefiYield API key, sent as a bearer token"
    )

    coins_per_page: int = Field(
        default=250,
        description="CoinGecko markets page size (250 is the API maximum)"
    )

    # ============================================
    # Staleness Configuration
    # ============================================

    expiration_interval: int = Field(
        default=300,
        description="Seconds after which a cached market info entry is stale"
    )

    sync_interval: int = Field(
        default=60,
        description="Seconds between background sync attempts"
    )

    # ============================================
    # Transport Configuration
    # ============================================

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    request_interval: float = Field(
        default=0.5,
        description="Minimum spacing between requests in seconds (CoinGecko rate limits)"
    )

    # ============================================
    # Market Configuration
    # ============================================

    currency_code: str = Field(
        default="USD",
        description="Default quote currency code"
    )

    provider_coins_file: str = Field(
        default="",
        description="Path to a JSON catalog mapping coin ids to provider ids"
    )

    exchange_priorities: str = Field(
        default=DEFAULT_EXCHANGE_PRIORITIES,
        description="Comma-separated exchange ids used to order tickers"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def exchange_priorities_list(self) -> List[str]:
        """
        Convert the comma-separated exchange priority string to a list.

        Example:
            >>> settings.exchange_priorities_list[:2]
            ['binance', 'binance_us']
        """
        return [e.strip().lower() for e in self.exchange_priorities.split(",") if e.strip()]


settings = Settings()


def validate_configuration() -> None:
    """
    Validate critical configuration settings before the engine starts.

    Raises:
        ValueError: If configuration is missing or invalid
    """
    from core.logging import logger

    for name in ("coingecko_base_url", "uniswap_subgraph_url", "eth_blocks_subgraph_url", "defiyield_base_url"):
        if not getattr(settings, name).startswith("http"):
            raise ValueError(f"{name.upper()} must be an http(s) URL")

    if not (1 <= settings.coins_per_page <= 250):
        raise ValueError(
            f"Invalid COINS_PER_PAGE: {settings.coins_per_page}. Must be between 1 and 250"
        )

    if settings.expiration_interval <= 0:
        raise ValueError("EXPIRATION_INTERVAL must be positive")

    if settings.sync_interval <= 0:
        raise ValueError("SYNC_INTERVAL must be positive")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"CoinGecko API: {settings.coingecko_base_url}")
    logger.info(f"Uniswap subgraph: {settings.uniswap_subgraph_url}")
    logger.info(f"Expiration interval: {settings.expiration_interval}s")
    logger.info(f"Log level: {settings.log_level.upper()}")
