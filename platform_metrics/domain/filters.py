"""
Janela de métricas e filtros reutilizáveis.
Centraliza a validação do período e a montagem dos predicados SQL por tenant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterator, Optional, Sequence

DEFAULT_ORDER_STATUSES: tuple[str, ...] = ("paid",)


class InvalidWindowError(ValueError):
    """Raised when a metric window is malformed or inverted."""


def _shift_year(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29/02 em ano não bissexto
        return d.replace(year=d.year + years, day=28)


def parse_date(value: str | date | datetime) -> date:
    """Parse a calendar date, dropping any time component."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except (ValueError, AttributeError) as exc:
        raise InvalidWindowError(f"Data inválida: {value!r}. Use ISO 8601 (ex.: 2025-06-01).") from exc


@dataclass(frozen=True)
class MetricWindow:
    """Intervalo de datas inclusivo [start, end]."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidWindowError(
                f"'start' ({self.start.isoformat()}) deve ser menor ou igual a 'end' ({self.end.isoformat()})."
            )

    @classmethod
    def parse(
        cls,
        start: str | date | datetime,
        end: str | date | datetime,
        *,
        max_days: Optional[int] = None,
    ) -> MetricWindow:
        window = cls(parse_date(start), parse_date(end))
        if max_days is not None and window.days > max_days:
            raise InvalidWindowError(f"Período máximo é de {max_days} dias (recebido: {window.days}).")
        return window

    @classmethod
    def last_days(cls, days: int, *, today: Optional[date] = None) -> MetricWindow:
        end = today or date.today()
        return cls(end - timedelta(days=days - 1), end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def end_exclusive(self) -> date:
        return self.end + timedelta(days=1)

    def dates(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def previous(self) -> MetricWindow:
        """Janela imediatamente anterior, com o mesmo número de dias."""
        end = self.start - timedelta(days=1)
        return MetricWindow(end - timedelta(days=self.days - 1), end)

    def year_ago(self) -> MetricWindow:
        return MetricWindow(_shift_year(self.start, -1), _shift_year(self.end, -1))

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class MetricFilters:
    """
    Filtros comuns aplicáveis à consulta de cada tenant.

    Os predicados opcionais são compostos numa única lista de condições, sem
    uma consulta separada para cada combinação de filtros.
    """

    window: MetricWindow
    tenant_slugs: Optional[tuple[str, ...]] = None
    order_statuses: tuple[str, ...] = field(default=DEFAULT_ORDER_STATUSES)

    @classmethod
    def build(
        cls,
        window: MetricWindow,
        tenant_slugs: Optional[Sequence[str]] = None,
        order_statuses: Optional[Sequence[str]] = None,
    ) -> MetricFilters:
        slugs = tuple(sorted({s.strip().lower() for s in tenant_slugs or () if s and s.strip()}))
        statuses = tuple(sorted({s.strip().lower() for s in order_statuses or () if s and s.strip()}))
        return cls(
            window=window,
            tenant_slugs=slugs or None,
            order_statuses=statuses or DEFAULT_ORDER_STATUSES,
        )

    def with_window(self, window: MetricWindow) -> MetricFilters:
        return MetricFilters(window=window, tenant_slugs=self.tenant_slugs, order_statuses=self.order_statuses)

    def includes_tenant(self, slug: str) -> bool:
        return self.tenant_slugs is None or slug in self.tenant_slugs

    def order_conditions(self, alias: str = "o") -> tuple[list[str], dict[str, Any]]:
        """
        Converte os filtros em condições SQL sobre a tabela de pedidos.

        Returns:
            Tupla contendo lista de condições WHERE e dicionário de parâmetros
        """
        conditions = [
            f"{alias}.created_at >= :start_date",
            f"{alias}.created_at < :end_date",
        ]
        params: dict[str, Any] = {
            "start_date": self.window.start,
            "end_date": self.window.end_exclusive,
        }

        if self.order_statuses:
            conditions.append(f"{alias}.financial_status = ANY(:order_statuses)")
            params["order_statuses"] = list(self.order_statuses)

        return conditions, params

    def apply_to_query(self, base_query: str, alias: str = "o") -> tuple[str, dict[str, Any]]:
        """Aplica os filtros a uma query base (sem WHERE)."""
        conditions, params = self.order_conditions(alias)
        return f"{base_query} WHERE {' AND '.join(conditions)}", params

    def cache_shape(self) -> dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "tenants": list(self.tenant_slugs) if self.tenant_slugs else None,
            "statuses": list(self.order_statuses),
        }
