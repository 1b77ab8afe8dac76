"""Outbound queue — bounded hand-off between producers and the sender loop.

Producers block in put() while the queue is full. close() wakes every
waiter: blocked producers get QueueClosedError, the consumer keeps
draining what is left and then stops.

Usage:
    queue = OutboundQueue(maxsize=16)
    await queue.put(message)          # producer side
    async for message in queue:       # single consumer
        ...
    await queue.close()
"""

import asyncio
from collections import deque
from typing import Optional

from .errors import QueueClosedError
from .messages import OutboundMessage


class OutboundQueue:

    def __init__(self, maxsize: int = 16):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        self._items: deque[OutboundMessage] = deque()
        self._closed = False
        self._cond = asyncio.Condition()

    def __len__(self) -> int:
        return len(self._items)

    async def put(self, message: OutboundMessage):
        """Enqueue a message, waiting for room.

        Raises:
            QueueClosedError: the queue is (or becomes) closed.
        """
        async with self._cond:
            while not self._closed and len(self._items) >= self._maxsize:
                await self._cond.wait()
            if self._closed:
                raise QueueClosedError("outbound queue is closed")
            self._items.append(message)
            self._cond.notify_all()

    async def get(self) -> Optional[OutboundMessage]:
        """Take the next message; None once closed and drained."""
        async with self._cond:
            while not self._items and not self._closed:
                await self._cond.wait()
            if not self._items:
                return None
            message = self._items.popleft()
            self._cond.notify_all()
            return message

    async def close(self):
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __aiter__(self):
        return self

    async def __anext__(self) -> OutboundMessage:
        message = await self.get()
        if message is None:
            raise StopAsyncIteration
        return message
