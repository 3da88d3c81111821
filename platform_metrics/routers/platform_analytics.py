"""Platform-wide metrics endpoints (operator only)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response

from platform_metrics.core.cache import etag_json
from platform_metrics.core.config import settings
from platform_metrics.core.logging import api_logger
from platform_metrics.core.security import OperatorContext, require_platform_operator
from platform_metrics.domain.filters import InvalidWindowError, MetricFilters, MetricWindow
from platform_metrics.services.dependencies import get_platform_analytics_service
from platform_metrics.services.platform_analytics_service import PlatformAnalyticsService


router = APIRouter(prefix="/platform", tags=["platform"])

DEFAULT_PERIOD_DAYS = 30


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _window(start: Optional[str], end: Optional[str]) -> MetricWindow:
    """Parse the inclusive window; both bounds or neither (last 30 days)."""
    if not start and not end:
        return MetricWindow.last_days(DEFAULT_PERIOD_DAYS)
    if not start or not end:
        raise HTTPException(status_code=400, detail="Informe 'start' e 'end' juntos.")
    try:
        return MetricWindow.parse(start, end, max_days=settings.MAX_WINDOW_DAYS)
    except InvalidWindowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _csv(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    items = [v.strip() for v in value.split(",") if v.strip()]
    return items or None


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.get("/analytics")
async def get_platform_analytics(
    request: Request,
    start: Optional[str] = Query(None, description="Início do período (YYYY-MM-DD). Default: últimos 30 dias"),
    end: Optional[str] = Query(None, description="Fim do período, inclusivo (YYYY-MM-DD)"),
    tenant: Optional[str] = Query(None, description="Slugs de tenants separados por vírgula"),
    status: Optional[str] = Query(None, description="Status financeiros dos pedidos (default: paid)"),
    operator: OperatorContext = Depends(require_platform_operator),
    service: PlatformAnalyticsService = Depends(get_platform_analytics_service),
) -> Response:
    """Full report: time series, top tenants, customer metrics, growth and totals."""
    filters = MetricFilters.build(_window(start, end), _csv(tenant), _csv(status))
    api_logger.info(
        "Platform analytics requested",
        operator=operator.user_id,
        window=f"{filters.window.start}..{filters.window.end}",
    )
    payload = await service.analytics_report(filters)
    return etag_json(request, payload, max_age=settings.CACHE_TTL_ANALYTICS_SECONDS)


@router.get("/overview")
async def get_platform_overview(
    request: Request,
    start: Optional[str] = Query(None, description="Início do período (YYYY-MM-DD). Default: últimos 30 dias"),
    end: Optional[str] = Query(None, description="Fim do período, inclusivo (YYYY-MM-DD)"),
    operator: OperatorContext = Depends(require_platform_operator),
    service: PlatformAnalyticsService = Depends(get_platform_analytics_service),
) -> Response:
    """KPI snapshot for the overview cards."""
    filters = MetricFilters.build(_window(start, end))
    payload = await service.kpi_snapshot(filters)
    return etag_json(request, payload, max_age=settings.CACHE_TTL_KPI_SECONDS)


@router.get("/tenants")
async def get_platform_tenants(
    request: Request,
    start: Optional[str] = Query(None, description="Início do período (YYYY-MM-DD). Default: últimos 30 dias"),
    end: Optional[str] = Query(None, description="Fim do período, inclusivo (YYYY-MM-DD)"),
    page: int = Query(1, ge=1, description="Página (1-based)"),
    page_size: int = Query(20, ge=1, le=100, description="Tenants por página"),
    search: Optional[str] = Query(None, description="Filtro por slug ou nome"),
    operator: OperatorContext = Depends(require_platform_operator),
    service: PlatformAnalyticsService = Depends(get_platform_analytics_service),
) -> Response:
    """Paginated tenant listing with per-tenant metrics for the period."""
    payload = await service.tenant_listing(_window(start, end), page, page_size, search)
    return etag_json(request, payload, max_age=settings.CACHE_TTL_LISTING_SECONDS)
