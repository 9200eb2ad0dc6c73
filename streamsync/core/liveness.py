"""
Process-wide registry of running discovery coordinators.

Syncer workers consult it when a batch comes up empty: as long as a
coordinator is registered, more paths may still arrive.
"""

import asyncio
import logging
from typing import Set


class LivenessRegistry:
    def __init__(self) -> None:
        self._active = 0
        self._members: Set[str] = set()
        self._lock = asyncio.Lock()

    async def register(self, finder_id: str) -> int:
        """Mark a coordinator as running. Returns the new active count."""
        async with self._lock:
            if finder_id in self._members:
                raise RuntimeError(f"Finder {finder_id} is already registered")
            self._members.add(finder_id)
            self._active += 1
            logging.debug(f"Finder {finder_id} registered, {self._active} active")
            return self._active

    async def deregister(self, finder_id: str) -> int:
        """Mark a coordinator as finished. Returns the new active count."""
        async with self._lock:
            if finder_id not in self._members:
                raise RuntimeError(f"Finder {finder_id} is not registered")
            self._members.discard(finder_id)
            self._active -= 1
            logging.debug(f"Finder {finder_id} deregistered, {self._active} active")
            return self._active

    async def active_count(self) -> int:
        async with self._lock:
            return self._active

    async def is_active(self, finder_id: str) -> bool:
        async with self._lock:
            return finder_id in self._members

    async def discovery_finished(self, finder_id: str, scope: str = "run") -> bool:
        """
        Check whether no more paths can arrive for a worker.

        With scope "run" this is true only once every coordinator of the run
        has finished; with scope "source" once the worker's own coordinator has.
        """
        async with self._lock:
            if scope == "source":
                return finder_id not in self._members
            return self._active == 0
