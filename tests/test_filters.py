"""Unit tests for metric windows and the tenant query filters."""
from __future__ import annotations

from datetime import date, datetime

import pytest

from platform_metrics.domain.filters import InvalidWindowError, MetricFilters, MetricWindow


@pytest.mark.unit
class TestMetricWindow:
    def test_inverted_window_is_rejected(self):
        with pytest.raises(InvalidWindowError):
            MetricWindow(date(2025, 1, 2), date(2025, 1, 1))

    def test_single_day_window(self):
        window = MetricWindow(date(2025, 1, 1), date(2025, 1, 1))
        assert window.days == 1
        assert list(window.dates()) == [date(2025, 1, 1)]
        assert window.end_exclusive == date(2025, 1, 2)

    def test_dates_cover_inclusive_range_across_month_end(self):
        window = MetricWindow(date(2025, 1, 30), date(2025, 2, 2))
        assert list(window.dates()) == [
            date(2025, 1, 30),
            date(2025, 1, 31),
            date(2025, 2, 1),
            date(2025, 2, 2),
        ]

    def test_previous_window_has_same_length_and_ends_the_day_before(self):
        window = MetricWindow(date(2025, 3, 1), date(2025, 3, 31))
        prev = window.previous()
        assert prev.end == date(2025, 2, 28)
        assert prev.days == window.days == 31
        assert prev.start == date(2025, 1, 29)

    def test_year_ago_clamps_leap_day(self):
        window = MetricWindow(date(2024, 2, 29), date(2024, 3, 1))
        assert window.year_ago() == MetricWindow(date(2023, 2, 28), date(2023, 3, 1))

    def test_parse_accepts_timestamps_and_drops_time(self):
        window = MetricWindow.parse("2025-01-01T10:30:00Z", datetime(2025, 1, 2, 23, 59))
        assert window == MetricWindow(date(2025, 1, 1), date(2025, 1, 2))

    @pytest.mark.parametrize("start,end", [("nope", "2025-01-01"), ("2025-13-01", "2025-12-31")])
    def test_parse_rejects_malformed_dates(self, start, end):
        with pytest.raises(InvalidWindowError):
            MetricWindow.parse(start, end)

    def test_parse_enforces_max_days(self):
        with pytest.raises(InvalidWindowError):
            MetricWindow.parse("2024-01-01", "2025-06-01", max_days=366)

    def test_last_days(self):
        window = MetricWindow.last_days(30, today=date(2025, 1, 30))
        assert window == MetricWindow(date(2025, 1, 1), date(2025, 1, 30))


@pytest.mark.unit
class TestMetricFilters:
    def test_build_normalizes_optional_filters(self):
        window = MetricWindow(date(2025, 1, 1), date(2025, 1, 2))
        filters = MetricFilters.build(window, [" Bravo", "alpha", "", "alpha"], ["PAID", "refunded"])
        assert filters.tenant_slugs == ("alpha", "bravo")
        assert filters.order_statuses == ("paid", "refunded")
        assert filters.includes_tenant("alpha")
        assert not filters.includes_tenant("charlie")

    def test_defaults_include_every_tenant_and_paid_orders(self):
        filters = MetricFilters.build(MetricWindow(date(2025, 1, 1), date(2025, 1, 2)))
        assert filters.tenant_slugs is None
        assert filters.order_statuses == ("paid",)
        assert filters.includes_tenant("anything")

    def test_order_conditions_use_half_open_date_range(self):
        filters = MetricFilters.build(MetricWindow(date(2025, 1, 1), date(2025, 1, 2)))
        query, params = filters.apply_to_query("SELECT COUNT(*) FROM orders o")
        assert query == (
            "SELECT COUNT(*) FROM orders o WHERE o.created_at >= :start_date "
            "AND o.created_at < :end_date AND o.financial_status = ANY(:order_statuses)"
        )
        assert params == {
            "start_date": date(2025, 1, 1),
            "end_date": date(2025, 1, 3),
            "order_statuses": ["paid"],
        }

    def test_with_window_keeps_other_filters(self):
        filters = MetricFilters.build(MetricWindow(date(2025, 1, 1), date(2025, 1, 2)), ["alpha"])
        shifted = filters.with_window(filters.window.previous())
        assert shifted.window == MetricWindow(date(2024, 12, 30), date(2024, 12, 31))
        assert shifted.tenant_slugs == ("alpha",)

    def test_cache_shape_is_order_independent(self):
        window = MetricWindow(date(2025, 1, 1), date(2025, 1, 2))
        a = MetricFilters.build(window, ["bravo", "alpha"])
        b = MetricFilters.build(window, ["alpha", "bravo"])
        assert a.cache_shape() == b.cache_shape()
