"""Contracts for the collaborators the aggregation consumes."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from platform_metrics.domain.filters import MetricFilters
from platform_metrics.domain.models import TenantDescriptor, TenantMetricResult


class TenantRegistryProtocol(Protocol):
    """Read-only view of the tenant registry."""

    async def list_active(self) -> list[TenantDescriptor]: ...


class TenantQueryContextProtocol(Protocol):
    """Runs one metric query that can only observe a single tenant's partition."""

    async def execute(self, tenant_slug: str, filters: MetricFilters) -> TenantMetricResult: ...


class CacheStoreProtocol(Protocol):
    """Shared keyed store with TTL."""

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...
