from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from platform_metrics.core.logging import app_logger
from platform_metrics.infra.db import health_check

router = APIRouter()

@router.get("/healthz")
def healthz():
    return {"status": "ok"}

@router.get("/readyz")
def readyz():
    try:
        return {"status": "ready", "database": health_check()}
    except SQLAlchemyError as exc:
        app_logger.error(f"Readiness check failed: {exc}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(exc)},
        )
