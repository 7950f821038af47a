"""
Storage Package

In-memory caching of fetched market data.

- ExpirableEntry: payload plus fetch timestamp, stale after an interval
- MarketInfoCache: latest market info per currency, swapped atomically

Nothing is persisted to disk; a restart refetches everything.
"""

from storage.cache import ExpirableEntry, MarketInfoCache

__all__ = ["ExpirableEntry", "MarketInfoCache"]
