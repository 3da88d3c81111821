"""Repository tests with the database layer replaced by recording fakes."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from platform_metrics.domain.filters import MetricFilters, MetricWindow
from platform_metrics.infra import db
from platform_metrics.repositories import metrics_repository, tenant_repository
from platform_metrics.repositories.metrics_repository import (
    QueryCancelHandle,
    TenantMetricsRepository,
    TenantQueryError,
)
from platform_metrics.repositories.tenant_repository import TenantRegistryError, TenantRepository

FILTERS = MetricFilters.build(MetricWindow(date(2025, 1, 1), date(2025, 1, 2)))


class RecordingConnection:
    def __init__(self):
        self.statements = []

    def execute(self, clause, params=None):
        self.statements.append(str(clause))


class FakeDBAPIConnection:
    def __init__(self):
        self.cancels = 0

    def cancel(self):
        self.cancels += 1


class ScopedConnection:
    def __init__(self):
        self.dbapi = FakeDBAPIConnection()
        self.connection = SimpleNamespace(dbapi_connection=self.dbapi)


class RecordingEngine:
    def __init__(self):
        self.connection = RecordingConnection()

    @contextmanager
    def begin(self):
        yield self.connection


@pytest.fixture()
def engine(monkeypatch):
    fake = RecordingEngine()
    monkeypatch.setattr(db, "get_engine", lambda: fake)
    return fake


@pytest.fixture()
def scoped_db(monkeypatch):
    """Route the tenant queries of the metrics repository to canned rows."""
    state = {"slugs": [], "timeouts": [], "error": None}

    @contextmanager
    def fake_scope(slug, *, timeout_ms=None):
        state["slugs"].append(slug)
        state["timeouts"].append(timeout_ms)
        if state["error"] is not None:
            raise state["error"]
        yield ScopedConnection()

    def fake_fetch_one(conn, sql, params=None):
        if "FROM customers" in sql:
            return {"new_customers": 3}
        return {"gmv_cents": 13000, "order_count": 3, "customer_count": 2}

    def fake_fetch_all(conn, sql, params=None):
        assert "GROUP BY bucket_day" in sql
        return [
            {"bucket_day": date(2025, 1, 1), "gmv_cents": 10000, "order_count": 2, "customer_count": 2},
            {"bucket_day": date(2025, 1, 2), "gmv_cents": 3000, "order_count": 1, "customer_count": None},
        ]

    monkeypatch.setattr(metrics_repository, "tenant_scope", fake_scope)
    monkeypatch.setattr(metrics_repository, "scoped_fetch_one", fake_fetch_one)
    monkeypatch.setattr(metrics_repository, "scoped_fetch_all", fake_fetch_all)
    return state


@pytest.mark.unit
class TestTenantScope:
    def test_scope_restricts_search_path_and_sets_timeout(self, engine):
        with db.tenant_scope("acme", timeout_ms=5000):
            pass

        assert engine.connection.statements == [
            'SET LOCAL search_path TO "tenant_acme"',
            "SET LOCAL statement_timeout = 5000",
        ]

    def test_scope_without_timeout(self, engine):
        with db.tenant_scope("acme"):
            pass
        assert len(engine.connection.statements) == 1

    @pytest.mark.parametrize("slug", ["", "Acme", 'acme"; DROP SCHEMA public; --', "-acme", "a" * 64])
    def test_invalid_slugs_are_rejected(self, slug):
        with pytest.raises(ValueError):
            db.tenant_schema(slug)

    @pytest.mark.parametrize("slug", ["acme", "acme-store", "shop_2"])
    def test_valid_slugs(self, slug):
        assert db.tenant_schema(slug) == f"tenant_{slug}"


@pytest.mark.unit
class TestTenantMetricsRepository:
    def test_builds_result_from_rows(self, scoped_db):
        result = TenantMetricsRepository(statement_timeout_ms=2500).execute_sync("acme", FILTERS)

        assert scoped_db["slugs"] == ["acme"]
        assert scoped_db["timeouts"] == [2500]
        assert result.gmv_cents == 13000
        assert result.order_count == 3
        assert result.new_customers == 3
        assert [b.to_dict() for b in result.daily_buckets] == [
            {"date": "2025-01-01", "gmvCents": 10000, "orderCount": 2, "customerCount": 2},
            {"date": "2025-01-02", "gmvCents": 3000, "orderCount": 1, "customerCount": 0},
        ]

    @pytest.mark.asyncio
    async def test_async_execute(self, scoped_db):
        result = await TenantMetricsRepository().execute("acme", FILTERS)
        assert result.tenant_slug == "acme"
        assert result.aov_cents == 4333

    def test_database_errors_become_tenant_errors(self, scoped_db):
        scoped_db["error"] = OperationalError("SET LOCAL search_path", {}, Exception("schema missing"))

        with pytest.raises(TenantQueryError) as info:
            TenantMetricsRepository().execute_sync("ghost", FILTERS)
        assert info.value.tenant_slug == "ghost"

    def test_invalid_slug_becomes_tenant_error(self):
        with pytest.raises(TenantQueryError):
            TenantMetricsRepository().execute_sync("Not Valid", FILTERS)

    def test_summary_query_is_filtered_by_window_and_status(self):
        sql, params = TenantMetricsRepository._summary_query(FILTERS)
        assert "FROM orders o WHERE" in sql
        assert params["order_statuses"] == ["paid"]
        assert params["end_date"] == date(2025, 1, 3)

    def test_abandoned_call_never_opens_a_connection(self, scoped_db):
        handle = QueryCancelHandle()
        handle.cancel()

        with pytest.raises(TenantQueryError):
            TenantMetricsRepository().execute_sync("acme", FILTERS, handle)
        assert scoped_db["slugs"] == []

    def test_connection_released_after_the_query(self, scoped_db):
        handle = QueryCancelHandle()
        TenantMetricsRepository().execute_sync("acme", FILTERS, handle)

        # a late cancel must not touch a connection already back in the pool
        handle.cancel()
        assert handle.cancelled


@pytest.mark.unit
class TestQueryCancelHandle:
    def test_cancel_aborts_the_running_query(self):
        conn = ScopedConnection()
        handle = QueryCancelHandle()

        assert handle.attach(conn)
        handle.cancel()

        assert conn.dbapi.cancels == 1

    def test_cancel_after_detach_is_a_noop(self):
        conn = ScopedConnection()
        handle = QueryCancelHandle()
        handle.attach(conn)
        handle.detach()

        handle.cancel()

        assert conn.dbapi.cancels == 0

    def test_attach_refused_once_cancelled(self):
        handle = QueryCancelHandle()
        handle.cancel()
        assert not handle.attach(ScopedConnection())


@pytest.mark.unit
class TestTenantRepository:
    def test_maps_rows_to_descriptors(self, monkeypatch):
        captured = {}

        def fake_fetch_all(sql, params=None, timeout_ms=None):
            captured["sql"] = sql
            captured["timeout_ms"] = timeout_ms
            return [{"id": "1", "slug": "acme", "name": "Acme", "status": "active"}]

        monkeypatch.setattr(tenant_repository, "fetch_all", fake_fetch_all)

        tenants = TenantRepository(timeout_ms=1234).list_active_sync()

        assert [t.slug for t in tenants] == ["acme"]
        assert "public.organizations" in captured["sql"]
        assert captured["timeout_ms"] == 1234

    @pytest.mark.asyncio
    async def test_unavailable_registry(self, monkeypatch):
        def broken(sql, params=None, timeout_ms=None):
            raise OperationalError(sql, {}, Exception("connection refused"))

        monkeypatch.setattr(tenant_repository, "fetch_all", broken)

        with pytest.raises(TenantRegistryError):
            await TenantRepository().list_active()
