"""
HTTP Transport

Async aiohttp client shared by all providers. It handles:
- GET requests with query parameters (REST) and POST requests with JSON bodies (GraphQL)
- Rate limit handling (429, 418, 503) with linear backoff
- Spacing between consecutive requests (CoinGecko free tier limits)
- Mapping every non-success answer to TransportError(status, body)

Usage:
    async with HttpTransport(provider="coingecko") as transport:
        data = await transport.get("https://api.coingecko.com/api/v3/ping")
"""

import aiohttp
import asyncio
import time
from typing import Any, Dict, Optional

from core.errors import TransportError
from core.logging import get_logger, log_api_request, log_api_response


class HttpTransport:
    """
    Async HTTP transport returning decoded JSON.

    Attributes:
        provider: Name used in log messages
        timeout: Total request timeout in seconds
        request_interval: Minimum seconds between two request starts
        max_attempts: Attempts for rate-limited or failed connections
        session: aiohttp ClientSession (created in __aenter__)

    Example:
        >>> async with HttpTransport(provider="uniswap") as transport:
        ...     data = await transport.post(url, {"query": "{bundle(id: 1) {ethPrice}}"})

    Notes:
        - Timeouts are the transport's responsibility; providers never set one
        - Non-retryable HTTP errors are raised on the first attempt
    """

    RETRY_STATUSES = (429, 418, 503)

    def __init__(
        self,
        provider: str,
        timeout: float = 10,
        request_interval: float = 0,
        max_attempts: int = 3
    ):
        self.provider = provider
        self.timeout = timeout
        self.request_interval = request_interval
        self.max_attempts = max_attempts
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None
        self._throttle_lock = asyncio.Lock()
        self._last_request_at = 0.0

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug(f"{self.provider} transport session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug(f"{self.provider} transport session closed")

    # ============================================
    # Public API
    # ============================================

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("POST", url, payload=payload, headers=headers)

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        Perform a request and return the decoded JSON body.

        Args:
            method: "GET" or "POST"
            url: Absolute URL
            params: Query parameters (GET)
            payload: JSON body (POST)
            headers: Extra request headers (e.g. Authorization)

        Returns:
            Decoded JSON response

        Raises:
            RuntimeError: Session not initialized
            TransportError: Non-success status, or connection failure after
                            all attempts (status 0)
        """
        if not self.session:
            raise RuntimeError("Transport session not initialized. Use 'async with' statement.")

        log_api_request(self.provider, url, params or payload)
        last_error = TransportError(0, "no attempt made")

        for attempt in range(self.max_attempts):
            await self._throttle()
            started = time.monotonic()
            try:
                async with self.session.request(
                    method,
                    url,
                    params=params,
                    json=payload,
                    headers={"Accept": "application/json", **(headers or {})},
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    log_api_response(self.provider, url, resp.status, time.monotonic() - started)

                    if resp.status == 200:
                        return await resp.json(content_type=None)

                    body = await resp.text()
                    if resp.status in self.RETRY_STATUSES:
                        delay = 1.5 * (attempt + 1)
                        self.logger.warning(
                            f"Rate limited (HTTP {resp.status}) on {url}. "
                            f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{self.max_attempts})"
                        )
                        last_error = TransportError(resp.status, body)
                        await asyncio.sleep(delay)
                        continue

                    self.logger.error(f"HTTP {resp.status} on {url}: {body}")
                    raise TransportError(resp.status, body)

            except asyncio.TimeoutError:
                self.logger.error(f"Timeout on {url} (attempt {attempt + 1}/{self.max_attempts})")
                last_error = TransportError(0, f"timeout after {self.timeout}s")
                await asyncio.sleep(1.0 * (attempt + 1))

            except aiohttp.ClientError as e:
                self.logger.error(f"Request failed on {url}: {e} (attempt {attempt + 1}/{self.max_attempts})")
                last_error = TransportError(0, str(e))
                await asyncio.sleep(1.0 * (attempt + 1))

        raise last_error

    async def _throttle(self) -> None:
        if self.request_interval <= 0:
            return
        async with self._throttle_lock:
            wait = self._last_request_at + self.request_interval - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_at = time.monotonic()
