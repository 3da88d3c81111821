"""
Repositório de métricas por tenant.
Cada chamada enxerga somente o schema do tenant informado.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Executor
from typing import Any, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from platform_metrics.core.logging import db_logger

from platform_metrics.domain.filters import MetricFilters
from platform_metrics.domain.models import DailyBucket, TenantMetricResult
from platform_metrics.infra.db import scoped_fetch_all, scoped_fetch_one, tenant_scope


class TenantQueryError(RuntimeError):
    """A tenant partition is missing or its query failed."""

    def __init__(self, tenant_slug: str, message: str):
        super().__init__(f"[{tenant_slug}] {message}")
        self.tenant_slug = tenant_slug
        self.message = message


class QueryCancelHandle:
    """
    Ponte entre o event loop e a thread que executa a consulta de um tenant.

    Quando o prazo estoura, o loop chama `cancel`: uma chamada que ainda não
    começou nem abre conexão, e uma consulta em andamento é abortada no
    servidor, liberando a thread para o próximo lote.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._dbapi_connection: Any = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def attach(self, conn: Connection) -> bool:
        """Registra a conexão em uso; False se a chamada já foi abandonada."""
        with self._lock:
            if self._cancelled:
                return False
            self._dbapi_connection = conn.connection.dbapi_connection
            return True

    def detach(self) -> None:
        with self._lock:
            self._dbapi_connection = None

    def cancel(self) -> None:
        # o lock impede cancelar uma conexão que já voltou ao pool
        with self._lock:
            self._cancelled = True
            if self._dbapi_connection is None:
                return
            try:
                self._dbapi_connection.cancel()
            except Exception as exc:
                db_logger.warning("Query cancel failed", error=str(exc))


class TenantMetricsRepository:
    """
    Executa a consulta de métricas (somatórios + quebra diária) de um tenant.
    Encapsula toda lógica SQL relacionada a pedidos e clientes.
    """

    def __init__(
        self,
        statement_timeout_ms: Optional[int] = None,
        executor: Optional[Executor] = None,
    ):
        self.statement_timeout_ms = statement_timeout_ms
        # pool próprio, dimensionado pelo lote; None usa o executor padrão do loop
        self.executor = executor

    @staticmethod
    def _summary_query(filters: MetricFilters) -> tuple[str, dict]:
        base_query = """
            SELECT
                COALESCE(SUM(o.total_cents), 0)::bigint AS gmv_cents,
                COUNT(*)::int AS order_count,
                COUNT(DISTINCT o.customer_id)::int AS customer_count
            FROM orders o
        """
        return filters.apply_to_query(base_query)

    @staticmethod
    def _daily_query(filters: MetricFilters) -> tuple[str, dict]:
        base_query = """
            SELECT
                DATE(o.created_at) AS bucket_day,
                COALESCE(SUM(o.total_cents), 0)::bigint AS gmv_cents,
                COUNT(*)::int AS order_count,
                COUNT(DISTINCT o.customer_id)::int AS customer_count
            FROM orders o
        """
        query, params = filters.apply_to_query(base_query)
        return query + " GROUP BY bucket_day ORDER BY bucket_day", params

    @staticmethod
    def _new_customers_query(filters: MetricFilters) -> tuple[str, dict]:
        query = """
            SELECT COUNT(*)::int AS new_customers
            FROM customers c
            WHERE c.created_at >= :start_date
              AND c.created_at < :end_date
        """
        return query, {
            "start_date": filters.window.start,
            "end_date": filters.window.end_exclusive,
        }

    def execute_sync(
        self,
        tenant_slug: str,
        filters: MetricFilters,
        cancel_handle: Optional[QueryCancelHandle] = None,
    ) -> TenantMetricResult:
        """
        Obtém as métricas de um tenant para a janela dos filtros.

        Raises:
            TenantQueryError: schema inexistente, slug inválido ou falha de execução
        """
        if cancel_handle is not None and cancel_handle.cancelled:
            raise TenantQueryError(tenant_slug, "abandonada antes de iniciar")
        try:
            with tenant_scope(tenant_slug, timeout_ms=self.statement_timeout_ms) as conn:
                if cancel_handle is not None and not cancel_handle.attach(conn):
                    raise TenantQueryError(tenant_slug, "abandonada antes de iniciar")
                try:
                    summary_sql, summary_params = self._summary_query(filters)
                    summary = scoped_fetch_one(conn, summary_sql, summary_params) or {}

                    customers_sql, customers_params = self._new_customers_query(filters)
                    customers = scoped_fetch_one(conn, customers_sql, customers_params) or {}

                    daily_sql, daily_params = self._daily_query(filters)
                    daily = scoped_fetch_all(conn, daily_sql, daily_params)
                finally:
                    if cancel_handle is not None:
                        cancel_handle.detach()
        except (SQLAlchemyError, ValueError) as exc:
            raise TenantQueryError(tenant_slug, str(exc)) from exc

        return TenantMetricResult(
            tenant_slug=tenant_slug,
            gmv_cents=int(summary.get("gmv_cents") or 0),
            order_count=int(summary.get("order_count") or 0),
            customer_count=int(summary.get("customer_count") or 0),
            new_customers=int(customers.get("new_customers") or 0),
            daily_buckets=[
                DailyBucket(
                    date=row["bucket_day"],
                    gmv_cents=int(row["gmv_cents"] or 0),
                    order_count=int(row["order_count"] or 0),
                    customer_count=int(row["customer_count"] or 0),
                )
                for row in daily
            ],
        )

    async def execute(self, tenant_slug: str, filters: MetricFilters) -> TenantMetricResult:
        handle = QueryCancelHandle()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, self.execute_sync, tenant_slug, filters, handle)
        except asyncio.CancelledError:
            # cancel() fala com o servidor; fora do loop
            loop.run_in_executor(None, handle.cancel)
            raise
