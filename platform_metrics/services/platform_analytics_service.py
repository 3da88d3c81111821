"""Platform-wide metrics assembled from every tenant partition."""

from __future__ import annotations

from typing import Any, Optional

from platform_metrics.core.cache import make_cache_key
from platform_metrics.core.logging import app_logger
from platform_metrics.domain.filters import MetricFilters, MetricWindow
from platform_metrics.domain.models import (
    AggregateReport,
    FanOutResult,
    KpiSnapshot,
    TenantDescriptor,
    TenantListingItem,
    TenantListingPage,
)
from platform_metrics.repositories.protocols import TenantQueryContextProtocol, TenantRegistryProtocol
from platform_metrics.repositories.tenant_repository import TenantRegistryError
from platform_metrics.services import combiner
from platform_metrics.services.cache_layer import ReportCache
from platform_metrics.services.fanout import FanOutExecutor


class PlatformAnalyticsService:
    """Service for the operator-facing platform reports."""

    def __init__(
        self,
        registry: TenantRegistryProtocol,
        context: TenantQueryContextProtocol,
        cache: ReportCache,
        *,
        batch_size: int = 25,
        timeout_seconds: float = 5.0,
        top_limit: int = combiner.TOP_TENANTS,
        kpi_ttl: int = 60,
        analytics_ttl: int = 300,
        listing_ttl: int = 30,
    ):
        self.registry = registry
        self.cache = cache
        self.executor = FanOutExecutor(context, batch_size=batch_size, timeout_seconds=timeout_seconds)
        self.top_limit = top_limit
        self.kpi_ttl = kpi_ttl
        self.analytics_ttl = analytics_ttl
        self.listing_ttl = listing_ttl

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def active_tenants(self, filters: Optional[MetricFilters] = None) -> list[TenantDescriptor]:
        """Read the registry once. Any failure aborts the request."""
        try:
            tenants = await self.registry.list_active()
        except TenantRegistryError:
            raise
        except Exception as exc:
            app_logger.error("Tenant registry read failed", exc=exc)
            raise TenantRegistryError("Registry de tenants indisponível.") from exc

        if filters is not None:
            tenants = [t for t in tenants if filters.includes_tenant(t.slug)]
        return tenants

    async def collect(self, tenants: list[TenantDescriptor], filters: MetricFilters) -> FanOutResult:
        return await self.executor.run(tenants, filters)

    async def compute_report(self, filters: MetricFilters) -> AggregateReport:
        """Run the fan-out for the window, its previous window and the year-ago window."""
        tenants = await self.active_tenants(filters)

        current = await self.collect(tenants, filters)
        previous = await self.collect(tenants, filters.with_window(filters.window.previous()))
        year_ago = await self.collect(tenants, filters.with_window(filters.window.year_ago()))

        current_totals = combiner.combine_totals(current.results)
        previous_totals = combiner.combine_totals(previous.results)
        year_ago_totals = combiner.combine_totals(year_ago.results)

        return AggregateReport(
            window=filters.window,
            time_series=combiner.merge_time_series(filters.window, current.results),
            tenant_revenue=combiner.rank_tenants(current, self.top_limit),
            customer_metrics=combiner.compute_customer_metrics(current_totals, previous_totals),
            growth=combiner.compute_growth(current_totals, previous_totals, year_ago_totals),
            totals=current_totals,
        )

    async def compute_kpis(self, filters: MetricFilters) -> KpiSnapshot:
        tenants = await self.active_tenants(filters)
        current = await self.collect(tenants, filters)
        return KpiSnapshot(
            window=filters.window,
            active_tenants=len(tenants),
            totals=combiner.combine_totals(current.results),
        )

    async def compute_listing(
        self,
        window: MetricWindow,
        page: int,
        page_size: int,
        search: Optional[str] = None,
    ) -> TenantListingPage:
        tenants = await self.active_tenants()
        if search:
            needle = search.strip().lower()
            tenants = [t for t in tenants if needle in t.slug.lower() or needle in t.name.lower()]

        offset = (page - 1) * page_size
        page_tenants = tenants[offset:offset + page_size]
        fanout = await self.collect(page_tenants, MetricFilters.build(window))

        return TenantListingPage(
            window=window,
            items=[TenantListingItem(tenant=t, result=fanout.result_for(t.slug)) for t in page_tenants],
            page=page,
            page_size=page_size,
            total=len(tenants),
        )

    # ------------------------------------------------------------------
    # Cached entry points
    # ------------------------------------------------------------------

    async def analytics_report(self, filters: MetricFilters) -> dict[str, Any]:
        key = make_cache_key("analytics", filters.cache_shape())

        async def compute() -> dict[str, Any]:
            return (await self.compute_report(filters)).to_dict()

        return await self.cache.get_or_compute(key, self.analytics_ttl, compute)

    async def kpi_snapshot(self, filters: MetricFilters) -> dict[str, Any]:
        key = make_cache_key("overview", filters.cache_shape())

        async def compute() -> dict[str, Any]:
            return (await self.compute_kpis(filters)).to_dict()

        return await self.cache.get_or_compute(key, self.kpi_ttl, compute)

    async def tenant_listing(
        self,
        window: MetricWindow,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        if page < 1 or page_size < 1:
            raise ValueError("page e page_size devem ser >= 1")
        shape = {
            "window": window.to_dict(),
            "page": page,
            "pageSize": page_size,
            "search": (search or "").strip().lower() or None,
        }
        key = make_cache_key("tenants", shape)

        async def compute() -> dict[str, Any]:
            return (await self.compute_listing(window, page, page_size, search)).to_dict()

        return await self.cache.get_or_compute(key, self.listing_ttl, compute)
