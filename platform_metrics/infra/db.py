from __future__ import annotations
import re
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, Result
from platform_metrics.core.config import settings
from platform_metrics.core.logging import db_logger

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")

# -----------------------------------------------------------------------------
# 1) Engine (pool de conexões)
# -----------------------------------------------------------------------------

_engine: Optional[Engine] = None

def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.DATABASE_URL,
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            future=True,
        )
        db_logger.info(
            "Engine criada",
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return _engine

def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None

# -----------------------------------------------------------------------------
# 2) Healthcheck (pronto para /healthz e /readyz)
# -----------------------------------------------------------------------------

def health_check() -> Dict[str, Any]:
    eng = get_engine()
    with eng.connect() as conn:
        conn.execute(text("SELECT 1"))

        db = conn.execute(text("SELECT current_database()")).scalar()
        user = conn.execute(text("SELECT current_user")).scalar_one()
        return {
            "ok": True,
            "database": db,
            "user": user,
        }

# -----------------------------------------------------------------------------
# 3) Helpers de consulta (SELECT) no schema público
# -----------------------------------------------------------------------------

def _rows(result: Result) -> List[Dict[str, Any]]:
    return [dict(r) for r in result.mappings().all()]

def fetch_all(sql: str, params: Optional[Dict[str, Any]] = None,
              timeout_ms: Optional[int] = None) -> List[Dict[str, Any]]:
    eng = get_engine()
    with eng.begin() as conn:
        if timeout_ms:
            conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
        return _rows(conn.execute(text(sql), params or {}))

def fetch_one(sql: str, params: Optional[Dict[str, Any]] = None,
              timeout_ms: Optional[int] = None) -> Optional[Dict[str, Any]]:
    rows = fetch_all(sql, params=params, timeout_ms=timeout_ms)
    return rows[0] if rows else None

# -----------------------------------------------------------------------------
# 4) Escopo por tenant (search_path restrito ao schema do tenant)
# -----------------------------------------------------------------------------

def tenant_schema(slug: str) -> str:
    if not _SLUG_RE.match(slug or ""):
        raise ValueError(f"Slug de tenant inválido: {slug!r}")
    return f"{settings.TENANT_SCHEMA_PREFIX}{slug}"

@contextmanager
def tenant_scope(slug: str, *, timeout_ms: Optional[int] = None) -> Generator[Connection, None, None]:
    """
    Conexão cuja transação enxerga apenas o schema do tenant.

    `SET LOCAL` vale só dentro da transação; o statement_timeout faz o próprio
    Postgres abortar uma consulta que o chamador já abandonou.
    """
    schema = tenant_schema(slug)
    eng = get_engine()
    with eng.begin() as conn:
        conn.execute(text(f'SET LOCAL search_path TO "{schema}"'))
        if timeout_ms:
            conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
        yield conn

def scoped_fetch_all(conn: Connection, sql: str,
                     params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return _rows(conn.execute(text(sql), params or {}))

def scoped_fetch_one(conn: Connection, sql: str,
                     params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    rows = scoped_fetch_all(conn, sql, params)
    return rows[0] if rows else None
