"""
Serviços de domínio separados das rotas.

Fan-out por tenant, combinação das métricas, cache e o serviço de relatórios da plataforma.
"""

from .cache_layer import ReportCache  # noqa: F401
from .envelope import build_envelope  # noqa: F401
from .fanout import FanOutExecutor, chunk_tenants, run_with_timeout, settle_batch  # noqa: F401
from .platform_analytics_service import PlatformAnalyticsService  # noqa: F401

__all__ = [
    "build_envelope",
    "chunk_tenants",
    "FanOutExecutor",
    "PlatformAnalyticsService",
    "ReportCache",
    "run_with_timeout",
    "settle_batch",
]
