"""
Repositório do registry de tenants.
Lê as organizações ativas do schema público.
"""

from __future__ import annotations

import asyncio

from sqlalchemy.exc import SQLAlchemyError

from platform_metrics.core.logging import db_logger
from platform_metrics.domain.models import TenantDescriptor
from platform_metrics.infra.db import fetch_all


class TenantRegistryError(RuntimeError):
    """The registry could not be read; there is nothing to fan out to."""


class TenantRepository:
    """
    Repositório para acesso ao registry de tenants.
    Uma única leitura, sem mutação.
    """

    def __init__(self, timeout_ms: int = 5000):
        self.timeout_ms = timeout_ms

    def list_active_sync(self) -> list[TenantDescriptor]:
        """
        Obtém os tenants ativos, ordenados por slug.

        Raises:
            TenantRegistryError: se o banco não responder
        """
        query = """
            SELECT id::text AS id, slug, name, status
            FROM public.organizations
            WHERE status = 'active'
            ORDER BY slug
        """
        try:
            rows = fetch_all(query, timeout_ms=self.timeout_ms)
        except SQLAlchemyError as exc:
            db_logger.error("Tenant registry unavailable", exc=exc)
            raise TenantRegistryError("Registry de tenants indisponível.") from exc

        return [
            TenantDescriptor(
                id=row["id"],
                slug=row["slug"],
                name=row["name"],
                status=row["status"],
            )
            for row in rows
        ]

    async def list_active(self) -> list[TenantDescriptor]:
        return await asyncio.to_thread(self.list_active_sync)
