"""
In-process change feed.

Services publish after a successful commit; WebSocket handlers subscribe to a
topic (e.g. ``user:<id>``) and push every payload to the connected client.
Publishing never blocks: a subscriber whose queue is full drops the oldest item.
"""
import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, DefaultDict, Dict, Set

logger = logging.getLogger(__name__)


def user_topic(user_id: str) -> str:
    return f"user:{user_id}"


def poll_topic(poll_id: str) -> str:
    return f"poll:{poll_id}"


class ChangeFeed:
    def __init__(self, max_queue_size: int = 100) -> None:
        self._subscribers: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._max_queue_size = max_queue_size

    @asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers[topic].add(queue)
        try:
            yield queue
        finally:
            self._subscribers[topic].discard(queue)
            if not self._subscribers[topic]:
                del self._subscribers[topic]

    def publish(self, topic: str, payload: Dict[str, Any]) -> int:
        """Deliver payload to every subscriber of topic. Returns the number of receivers."""
        queues = self._subscribers.get(topic, ())
        for queue in queues:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(payload)
        if queues:
            logger.debug("Published %s to %d subscriber(s)", topic, len(queues))
        return len(queues)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def topic_count(self) -> int:
        return len(self._subscribers)


change_feed = ChangeFeed()
