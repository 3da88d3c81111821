"""Cache-aside around report computation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from platform_metrics.core.logging import cache_logger
from platform_metrics.repositories.protocols import CacheStoreProtocol
from platform_metrics.services.envelope import build_envelope


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ReportCache:
    """
    Serve a report from the shared store or compute and store it.

    The store is optional infrastructure: any error reading it counts as a
    miss and any error writing it is logged and ignored.
    """

    def __init__(self, store: CacheStoreProtocol, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.clock = clock

    async def _read(self, key: str) -> Optional[dict[str, Any]]:
        try:
            value = await self.store.get(key)
        except Exception as exc:
            cache_logger.warning("Cache read failed, computing fresh", key=key, error=str(exc))
            return None
        if value is not None and not (isinstance(value, dict) and "report" in value and "computedAt" in value):
            cache_logger.warning("Unexpected cache entry shape, ignoring", key=key)
            return None
        return value

    async def _write(self, key: str, value: dict[str, Any], ttl_seconds: float) -> None:
        try:
            await self.store.set(key, value, ttl_seconds)
        except Exception as exc:
            cache_logger.warning("Cache write failed, result not stored", key=key, error=str(exc))

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: float,
        compute: Callable[[], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        hit = await self._read(key)
        if hit is not None:
            cache_logger.debug("Cache hit", key=key)
            return build_envelope(
                hit["report"],
                cached=True,
                timestamp=datetime.fromisoformat(hit["computedAt"]),
            )

        cache_logger.debug("Cache miss", key=key)
        report = await compute()
        computed_at = self.clock()
        await self._write(key, {"report": report, "computedAt": computed_at.isoformat()}, ttl_seconds)
        return build_envelope(report, cached=False, timestamp=computed_at)
