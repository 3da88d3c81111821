"""In-process TTL key/value store shared by every request of one application."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from platform_metrics.core.logging import cache_logger


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class InMemoryCacheStore:
    """
    Keyed store with per-entry TTL.

    Expired entries are never returned: `get` checks the deadline on every read
    and a background task sweeps whatever nobody reads again. Every operation
    runs without awaiting in between, so no lock is needed on the event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._entries[key] = CacheEntry(key, value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            cache_logger.debug("Expired cache entries removed", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.purge_expired()

    def start_cleanup(self, interval_seconds: float) -> None:
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop(interval_seconds))
        cache_logger.info("Cache cleanup task started", interval_seconds=interval_seconds)

    async def stop_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        cache_logger.info("Cache cleanup task stopped")
