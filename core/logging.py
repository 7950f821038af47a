"""
Unified Logging Configuration

This module sets up the logging system shared by the market info engine.
Providers, the router and the sync service all log through loggers that live
under the "marketinfo" namespace, so a host application can tune or silence
the whole engine with a single logger name.

Usage:
    from core.logging import get_logger
    logger = get_logger(__name__)

    logger.debug("Resolved 12 block heights")
    logger.info("Fetched 250 coin markets")
    logger.warning("Exchange rate missing for EUR")
    logger.error("Uniswap subgraph returned errors")

Log Levels (from most to least verbose):
    DEBUG    - Request parameters, parsed payload sizes, skipped coins
    INFO     - Completed fetches and cache refreshes
    WARNING  - Rate limiting and recoverable upstream anomalies
    ERROR    - Failed refreshes (previous cache entries are kept)

Configuration:
    Log level is controlled by the LOG_LEVEL setting in the .env file.
"""

import logging
import sys
from typing import Optional

from core.config import settings

ROOT_LOGGER_NAME = "marketinfo"

# Handler installed by the last setup_logging() call
_stream_handler: Optional[logging.Handler] = None


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Attach a stdout handler to the engine's logger and return it.

    Only the "marketinfo" logger is touched; the host application's root
    logger and its handlers are left alone. Records handled here are not
    propagated further, so a host with its own root handler does not print
    them twice. Calling it again replaces the previously installed handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured "marketinfo" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Engine started")
        2024-01-01 12:00:00 [INFO] marketinfo Engine started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    global _stream_handler
    if _stream_handler is not None:
        root.removeHandler(_stream_handler)

    _stream_handler = logging.StreamHandler(sys.stdout)
    _stream_handler.setFormatter(logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(_stream_handler)
    root.propagate = False

    return root


# ============================================
# Initialize Logger with Settings
# ============================================

# Importing the engine only sets the level; output is left to the host
# application (or to an explicit setup_logging() call).
logger = logging.getLogger(ROOT_LOGGER_NAME)
logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
logger.addHandler(logging.NullHandler())


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "marketinfo.<name>"

    Example:
        # In providers/coingecko/api_client.py:
        logger = get_logger(__name__)  # "marketinfo.providers.coingecko.api_client"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the engine log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an upstream request with consistent formatting.

    Args:
        provider: Provider name (e.g., "coingecko", "uniswap")
        endpoint: Endpoint path or subgraph name
        params: Request parameters (optional)

    Example:
        >>> log_api_request("coingecko", "/coins/markets", {"vs_currency": "usd"})
        [DEBUG] API Request: coingecko /coins/markets | Params: {'vs_currency': 'usd'}
    """
    if params:
        logger.debug(f"API Request: {provider} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an upstream response with status and timing information.

    Args:
        provider: Provider name
        endpoint: Endpoint path or subgraph name
        status: HTTP status code
        response_time: Response time in seconds (optional)

    Example:
        >>> log_api_response("coingecko", "/coins/markets", 200, 0.342)
        [DEBUG] API Response: coingecko /coins/markets | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


logger.debug("Logging system initialized")
