"""
Repositórios para acesso a dados.
Registry de tenants (schema público) e métricas por tenant (schema isolado).
"""

from .metrics_repository import TenantMetricsRepository, TenantQueryError
from .tenant_repository import TenantRegistryError, TenantRepository

__all__ = [
    "TenantMetricsRepository",
    "TenantQueryError",
    "TenantRegistryError",
    "TenantRepository",
]
