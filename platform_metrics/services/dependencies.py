"""FastAPI dependency providers for service layer."""

from concurrent.futures import Executor

from fastapi import Depends, Request

from platform_metrics.core.config import settings
from platform_metrics.infra.cache_store import InMemoryCacheStore
from platform_metrics.repositories.metrics_repository import TenantMetricsRepository
from platform_metrics.repositories.tenant_repository import TenantRepository
from platform_metrics.services.cache_layer import ReportCache
from platform_metrics.services.platform_analytics_service import PlatformAnalyticsService


def get_cache_store(request: Request) -> InMemoryCacheStore:
    return request.app.state.cache_store


def get_tenant_executor(request: Request) -> Executor:
    return request.app.state.tenant_executor


def get_platform_analytics_service(
    store: InMemoryCacheStore = Depends(get_cache_store),
    executor: Executor = Depends(get_tenant_executor),
) -> PlatformAnalyticsService:
    return PlatformAnalyticsService(
        TenantRepository(),
        TenantMetricsRepository(
            statement_timeout_ms=settings.TENANT_QUERY_TIMEOUT_MS,
            executor=executor,
        ),
        ReportCache(store),
        batch_size=settings.TENANT_BATCH_SIZE,
        timeout_seconds=settings.TENANT_QUERY_TIMEOUT_SECONDS,
        top_limit=settings.TOP_TENANTS_LIMIT,
        kpi_ttl=settings.CACHE_TTL_KPI_SECONDS,
        analytics_ttl=settings.CACHE_TTL_ANALYTICS_SECONDS,
        listing_ttl=settings.CACHE_TTL_LISTING_SECONDS,
    )
