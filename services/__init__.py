"""
Services Package

Long-running components built on the providers:
- event_bus: asyncio pub/sub used to stream refreshed market info
- market_info_manager: cached, periodically synced market info
"""
