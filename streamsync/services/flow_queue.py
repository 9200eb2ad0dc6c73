"""
Flow-controlled path queue - one per source.

The queue itself never refuses a push. Capacity is enforced by the producer,
which calls ``wait_below`` after pausing discovery and is woken by pops.
"""

import asyncio
import logging

from ..models import PopResult


class FlowControlledQueue:
    def __init__(self, capacity: int, name: str = "queue"):
        if capacity < 1:
            raise ValueError(f"Queue capacity must be at least 1, got {capacity}")

        self.capacity = capacity
        self.name = name
        self.peak_size = 0
        self.total_pushed = 0
        self.total_popped = 0

        self._items: asyncio.Queue[str] = asyncio.Queue()
        self._changed = asyncio.Condition()
        self._consumers = 0

    @property
    def size(self) -> int:
        return self._items.qsize()

    def __len__(self) -> int:
        return self._items.qsize()

    def empty(self) -> bool:
        return self._items.empty()

    @property
    def is_full(self) -> bool:
        return self.size >= self.capacity

    @property
    def consumers(self) -> int:
        return self._consumers

    def push(self, path: str) -> None:
        self._items.put_nowait(path)
        self.total_pushed += 1
        if self.size > self.peak_size:
            self.peak_size = self.size

    async def pop(self, timeout: float) -> PopResult:
        """Wait up to ``timeout`` seconds for the next path."""
        try:
            item = await asyncio.wait_for(self._items.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return PopResult()

        self.total_popped += 1
        async with self._changed:
            self._changed.notify_all()
        return PopResult(item=item)

    async def wait_below(self, threshold: int) -> bool:
        """
        Block until occupancy drops below ``threshold``.

        Returns False instead if every consumer detached first, since nothing
        would ever drain the queue.
        """
        async with self._changed:
            await self._changed.wait_for(
                lambda: self.size < threshold or self._consumers == 0
            )
            return self.size < threshold

    def attach_consumer(self) -> None:
        self._consumers += 1

    async def detach_consumer(self) -> None:
        self._consumers -= 1
        if self._consumers == 0:
            logging.debug(f"Last consumer detached from {self.name}")
        async with self._changed:
            self._changed.notify_all()
