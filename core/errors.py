"""
Error Types

Every exception raised by the engine derives from MarketInfoError, so callers
can catch one type for any engine failure.

Taxonomy:
    - UnresolvedIdentifierError: coin has no id for a provider (skip the coin)
    - TransportError: upstream answered with a non-success status
    - MalformedResponseError: a required field is missing or has the wrong shape
    - UnsupportedCoinTypeError: provider cannot serve this coin type at all
"""

from typing import Any


class MarketInfoError(Exception):
    """Base exception for the market info engine."""


class UnresolvedIdentifierError(MarketInfoError):
    """The identifier catalog has no mapping for (coin_type, provider)."""

    def __init__(self, coin_type: Any, provider: str):
        self.coin_type = coin_type
        self.provider = provider
        super().__init__(f"No {provider} id for coin {coin_type}")


class TransportError(MarketInfoError):
    """
    Non-success answer from an upstream API.

    Attributes:
        status: HTTP status code (0 when the request never got a response)
        body: Response body text, or the underlying error message
    """

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}")


class MalformedResponseError(MarketInfoError):
    """A required response field is missing or has an unexpected shape."""


class UnsupportedCoinTypeError(MarketInfoError):
    """A provider was asked for a coin type it structurally cannot serve."""

    def __init__(self, coin_type: Any, provider: str):
        self.coin_type = coin_type
        self.provider = provider
        super().__init__(f"{provider} does not support coin {coin_type}")
