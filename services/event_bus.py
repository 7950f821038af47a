"""
Simple Async Pub/Sub Event Bus

A lightweight publish/subscribe utility built on asyncio queues. The market
info manager publishes every refreshed record mapping on a per-currency topic,
and each stream consumer reads from its own queue independently.

Topics:
    market_info:<CURRENCY>   -> Dict[CoinType, MarketInfoRecord]
"""

import asyncio
from typing import Any, DefaultDict, Set
from collections import defaultdict

from core.logging import get_logger


def market_info_topic(currency_code: str) -> str:
    return f"market_info:{currency_code.upper()}"


class EventBus:
    """
    Async event bus with topic-based pub/sub.

    - Each subscriber gets its own asyncio.Queue and never blocks publishers.
    - Unsubscribing is required when a consumer goes away, or its queue leaks.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._topics: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._max_queue_size = max_queue_size
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    async def subscribe(self, topic: str) -> asyncio.Queue:
        """Subscribe to a topic. Returns the queue events are delivered to."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._topics[topic].add(queue)
        self._logger.debug(f"Subscriber added to topic '{topic}'. total={len(self._topics[topic])}")
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        async with self._lock:
            if queue in self._topics.get(topic, set()):
                self._topics[topic].remove(queue)
                while not queue.empty():
                    queue.get_nowait()
        self._logger.debug(f"Subscriber removed from topic '{topic}'. total={len(self._topics[topic])}")

    async def publish(self, topic: str, event: Any) -> None:
        """Publish an event to a topic. Drops the event for subscribers whose queue is full."""
        subscribers = list(self._topics.get(topic, set()))
        if not subscribers:
            return

        for q in subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                self._logger.warning(f"Dropping event for topic '{topic}' due to full queue")

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, set()))
