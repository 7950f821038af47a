"""
Core Utilities Package

Modules:
    - time: Clock and timestamp unit conversion helpers
"""

from core.utils.time import current_timestamp, ms_to_seconds, to_utc_datetime

__all__ = ["current_timestamp", "ms_to_seconds", "to_utc_datetime"]
