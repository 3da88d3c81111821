from __future__ import annotations

from platform_metrics.core.application import create_application

# Instância global para uvicorn: `uvicorn platform_metrics.main:app --reload`
app = create_application()
