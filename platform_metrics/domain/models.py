"""
Modelos de domínio e DTOs.
Representam os conceitos de negócio independentes da infraestrutura.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Optional, Union

from platform_metrics.domain.filters import MetricWindow


def average_order_value(gmv_cents: int, order_count: int) -> int:
    """AOV em centavos; 0 quando não há pedidos."""
    if order_count <= 0:
        return 0
    return gmv_cents // order_count


def normalize_bucket_date(value: Union[date, datetime, str]) -> date:
    """Reduz a chave do bucket à data de calendário."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


@dataclass(frozen=True)
class TenantDescriptor:
    """Tenant ativo lido do registry (somente leitura)."""

    id: str
    slug: str
    name: str
    status: str = "active"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "slug": self.slug, "name": self.name, "status": self.status}


@dataclass
class DailyBucket:
    """Métricas de um dia de calendário."""

    date: date
    gmv_cents: int = 0
    order_count: int = 0
    customer_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "gmvCents": self.gmv_cents,
            "orderCount": self.order_count,
            "customerCount": self.customer_count,
        }


@dataclass
class TenantMetricResult:
    """Resultado da consulta de um tenant para uma janela."""

    tenant_slug: str
    gmv_cents: int = 0
    order_count: int = 0
    customer_count: int = 0
    new_customers: int = 0
    daily_buckets: list[DailyBucket] = field(default_factory=list)

    @property
    def aov_cents(self) -> int:
        return average_order_value(self.gmv_cents, self.order_count)

    def with_normalized_dates(self) -> TenantMetricResult:
        """
        Copia o resultado com as datas dos buckets reduzidas a `date`.

        Raises:
            ValueError: se algum bucket trouxer uma data ilegível
        """
        return replace(
            self,
            daily_buckets=[replace(b, date=normalize_bucket_date(b.date)) for b in self.daily_buckets],
        )


@dataclass
class TenantOutcome:
    """Sucesso ou falha explícita de um tenant dentro do fan-out."""

    tenant: TenantDescriptor
    result: Optional[TenantMetricResult] = None
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.result is not None

    @classmethod
    def success(cls, tenant: TenantDescriptor, result: TenantMetricResult) -> TenantOutcome:
        return cls(tenant=tenant, result=result)

    @classmethod
    def failure(cls, tenant: TenantDescriptor, error: str, *, timed_out: bool = False) -> TenantOutcome:
        return cls(tenant=tenant, error=error, timed_out=timed_out)


@dataclass
class FanOutResult:
    """Acumulador do fan-out: sucessos e falhas de uma janela."""

    successes: list[TenantOutcome] = field(default_factory=list)
    failures: list[TenantOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.successes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed

    @property
    def results(self) -> list[TenantMetricResult]:
        return [o.result for o in self.successes if o.result is not None]

    def extend(self, outcomes: list[TenantOutcome]) -> None:
        for outcome in outcomes:
            (self.successes if outcome.ok else self.failures).append(outcome)

    def result_for(self, slug: str) -> Optional[TenantMetricResult]:
        for outcome in self.successes:
            if outcome.tenant.slug == slug:
                return outcome.result
        return None


@dataclass
class MetricTotals:
    """Somatório das métricas escalares dos tenants bem-sucedidos."""

    gmv_cents: int = 0
    order_count: int = 0
    customer_count: int = 0
    new_customers: int = 0

    @property
    def aov_cents(self) -> int:
        return average_order_value(self.gmv_cents, self.order_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gmvCents": self.gmv_cents,
            "orderCount": self.order_count,
            "customerCount": self.customer_count,
        }


@dataclass
class TenantRevenueRow:
    """Linha do ranking de receita por tenant."""

    slug: str
    name: str
    gmv_cents: int
    order_count: int
    aov_cents: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "gmvCents": self.gmv_cents,
            "orderCount": self.order_count,
            "aovCents": self.aov_cents,
        }


@dataclass
class CustomerMetrics:
    total_customers: int
    new_customers: int
    returning_customers: int
    aov_cents: int
    previous_aov_cents: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCustomers": self.total_customers,
            "newCustomers": self.new_customers,
            "returningCustomers": self.returning_customers,
            "aovCents": self.aov_cents,
            "previousAovCents": self.previous_aov_cents,
        }


@dataclass
class GrowthMetrics:
    """Variação percentual período contra período."""

    mom_gmv_change: float = 0.0
    yoy_gmv_change: float = 0.0
    mom_order_change: float = 0.0
    mom_customer_change: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "momGmvChange": self.mom_gmv_change,
            "yoyGmvChange": self.yoy_gmv_change,
            "momOrderChange": self.mom_order_change,
            "momCustomerChange": self.mom_customer_change,
        }


@dataclass
class AggregateReport:
    """Relatório agregado da plataforma (artefato cacheável)."""

    window: MetricWindow
    time_series: list[DailyBucket]
    tenant_revenue: list[TenantRevenueRow]
    customer_metrics: CustomerMetrics
    growth: GrowthMetrics
    totals: MetricTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateRange": self.window.to_dict(),
            "timeSeries": [b.to_dict() for b in self.time_series],
            "tenantRevenue": [r.to_dict() for r in self.tenant_revenue],
            "customerMetrics": self.customer_metrics.to_dict(),
            "growth": self.growth.to_dict(),
            "totals": self.totals.to_dict(),
        }


@dataclass
class KpiSnapshot:
    """Resumo leve para o painel de visão geral."""

    window: MetricWindow
    active_tenants: int
    totals: MetricTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateRange": self.window.to_dict(),
            "activeTenants": self.active_tenants,
            "totals": self.totals.to_dict(),
            "aovCents": self.totals.aov_cents,
        }


@dataclass
class TenantListingItem:
    tenant: TenantDescriptor
    result: Optional[TenantMetricResult] = None

    def to_dict(self) -> dict[str, Any]:
        r = self.result
        return {
            **self.tenant.to_dict(),
            "available": r is not None,
            "gmvCents": r.gmv_cents if r else None,
            "orderCount": r.order_count if r else None,
            "customerCount": r.customer_count if r else None,
            "aovCents": r.aov_cents if r else None,
        }


@dataclass
class TenantListingPage:
    """Página da listagem de tenants com métricas do período."""

    window: MetricWindow
    items: list[TenantListingItem]
    page: int
    page_size: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateRange": self.window.to_dict(),
            "items": [i.to_dict() for i in self.items],
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
        }
