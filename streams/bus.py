from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class StreamBus:
    """In-process fan-out of feed ticks and session events to live listeners.

    Every message carries a ``kind`` ("signal", "trial_recorded",
    "session_ended"). A subscriber may ask for a subset of kinds. Delivery
    never blocks the publisher: a full queue loses its oldest message.
    """

    def __init__(self, max_queue: int = 256):
        self._filters: Dict[asyncio.Queue, Optional[frozenset]] = {}
        self._max_queue = max_queue
        self.dropped = 0

    async def subscribe(self, kinds: Optional[Iterable[str]] = None) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue)
        self._filters[queue] = frozenset(kinds) if kinds else None
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._filters.pop(queue, None)

    def publish_nowait(self, message: Dict[str, Any]) -> int:
        """Deliver to every matching subscriber; returns how many received it."""
        kind = message.get("kind")
        delivered = 0
        for queue, kinds in list(self._filters.items()):
            if kinds is not None and kind not in kinds:
                continue
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                else:
                    self.dropped += 1
                    if self.dropped % 1000 == 1:
                        logger.warning("Stream bus dropping messages for a slow subscriber (%s so far)", self.dropped)
            queue.put_nowait(message)
            delivered += 1
        return delivered

    def subscriber_count(self) -> int:
        return len(self._filters)
