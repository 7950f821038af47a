"""
Time Utilities

Upstream sources disagree on timestamp units:
- CoinGecko chart series: milliseconds since epoch (e.g., 1704110400000)
- The Graph subgraphs and our own records: seconds since epoch (e.g., 1704110400)

Everything inside the engine uses integer Unix seconds. These helpers convert
at the edges and provide the default clock used by providers and the manager.
"""

import time
from datetime import datetime, timezone
from typing import Union


def current_timestamp() -> int:
    """Current Unix time in whole seconds. Default clock for providers and the manager."""
    return int(time.time())


def ms_to_seconds(timestamp_ms: Union[int, float]) -> int:
    """
    Convert a millisecond timestamp to whole seconds (truncating).

    Example:
        >>> ms_to_seconds(1704110400999)
        1704110400
    """
    return int(timestamp_ms // 1000)


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a Unix timestamp (seconds) to a timezone-aware UTC datetime.

    Raises:
        ValueError: If timestamp is negative or out of range

    Example:
        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")
