"""Merge per-tenant results into platform-wide figures."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from platform_metrics.domain.filters import MetricWindow
from platform_metrics.domain.models import (
    CustomerMetrics,
    DailyBucket,
    FanOutResult,
    GrowthMetrics,
    MetricTotals,
    TenantMetricResult,
    TenantRevenueRow,
    average_order_value,
    normalize_bucket_date,
)

TOP_TENANTS = 10


def combine_totals(results: Iterable[TenantMetricResult]) -> MetricTotals:
    totals = MetricTotals()
    for r in results:
        totals.gmv_cents += r.gmv_cents
        totals.order_count += r.order_count
        totals.customer_count += r.customer_count
        totals.new_customers += r.new_customers
    return totals


def merge_time_series(window: MetricWindow, results: Iterable[TenantMetricResult]) -> list[DailyBucket]:
    """
    One bucket per calendar date of the window, ascending, zero when no tenant
    reported that day. Buckets outside the window are ignored.
    """
    series: dict[date, DailyBucket] = {d: DailyBucket(date=d) for d in window.dates()}
    for r in results:
        for bucket in r.daily_buckets:
            target = series.get(normalize_bucket_date(bucket.date))
            if target is None:
                continue
            target.gmv_cents += bucket.gmv_cents
            target.order_count += bucket.order_count
            target.customer_count += bucket.customer_count
    return [series[d] for d in sorted(series)]


def rank_tenants(fanout: FanOutResult, limit: int = TOP_TENANTS) -> list[TenantRevenueRow]:
    rows = [
        TenantRevenueRow(
            slug=outcome.tenant.slug,
            name=outcome.tenant.name,
            gmv_cents=outcome.result.gmv_cents,
            order_count=outcome.result.order_count,
            aov_cents=average_order_value(outcome.result.gmv_cents, outcome.result.order_count),
        )
        for outcome in fanout.successes
        if outcome.result is not None
    ]
    # slug only breaks ties so equal GMVs keep a stable order
    rows.sort(key=lambda row: (-row.gmv_cents, row.slug))
    return rows[:limit]


def percent_change(current: float, previous: float) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def compute_growth(current: MetricTotals, previous: MetricTotals, year_ago: MetricTotals) -> GrowthMetrics:
    return GrowthMetrics(
        mom_gmv_change=percent_change(current.gmv_cents, previous.gmv_cents),
        yoy_gmv_change=percent_change(current.gmv_cents, year_ago.gmv_cents),
        mom_order_change=percent_change(current.order_count, previous.order_count),
        mom_customer_change=percent_change(current.customer_count, previous.customer_count),
    )


def compute_customer_metrics(current: MetricTotals, previous: MetricTotals) -> CustomerMetrics:
    return CustomerMetrics(
        total_customers=current.customer_count,
        new_customers=current.new_customers,
        returning_customers=max(current.customer_count - current.new_customers, 0),
        aov_cents=current.aov_cents,
        previous_aov_cents=previous.aov_cents,
    )
