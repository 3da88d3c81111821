"""
Modelos de domínio e DTOs para a aplicação.
Camada de domínio independente de infraestrutura.
"""

from .filters import InvalidWindowError, MetricFilters, MetricWindow
from .models import (
    AggregateReport,
    DailyBucket,
    FanOutResult,
    KpiSnapshot,
    TenantDescriptor,
    TenantListingPage,
    TenantMetricResult,
    TenantOutcome,
)

__all__ = [
    "AggregateReport",
    "DailyBucket",
    "FanOutResult",
    "InvalidWindowError",
    "KpiSnapshot",
    "MetricFilters",
    "MetricWindow",
    "TenantDescriptor",
    "TenantListingPage",
    "TenantMetricResult",
    "TenantOutcome",
]
