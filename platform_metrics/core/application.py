"""
Application builder.
Assembles middlewares, routes, lifespan and exception handlers in order.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from platform_metrics.core.config import settings
from platform_metrics.core.logging import app_logger, init_app_logging
from platform_metrics.domain.filters import InvalidWindowError
from platform_metrics.infra.cache_store import InMemoryCacheStore
from platform_metrics.infra.db import dispose_engine, health_check
from platform_metrics.repositories.tenant_repository import TenantRegistryError
from platform_metrics.routers import health, platform_analytics


class ApplicationBuilder:
    """Builder for FastAPI application with separated concerns."""

    def __init__(self, cache_store: Optional[InMemoryCacheStore] = None):
        self.app = FastAPI(
            title=settings.APP_NAME,
            version="1.0.0",
            description="Platform-wide metrics aggregated across tenant partitions",
            openapi_url="/api/v1/openapi.json",
            docs_url="/docs",
            redoc_url="/redoc",
        )
        # one store per application; tests build their own
        self.app.state.cache_store = cache_store if cache_store is not None else InMemoryCacheStore()
        # consultas por tenant rodam aqui, nunca no executor padrão do loop
        self.app.state.tenant_executor = ThreadPoolExecutor(
            max_workers=settings.TENANT_BATCH_SIZE,
            thread_name_prefix="tenant-query",
        )
        self._middlewares_added = False
        self._routes_added = False
        self._startup_handlers_added = False

    def add_cors_middleware(self) -> ApplicationBuilder:
        """Add CORS middleware configuration."""
        if self._middlewares_added:
            raise RuntimeError("Middlewares already added")

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS_LIST or ["http://localhost:3000", "http://localhost:5173"],
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )
        app_logger.info("CORS middleware added")
        return self

    def add_security_middleware(self) -> ApplicationBuilder:
        """Add security-related response headers."""
        if self._middlewares_added:
            raise RuntimeError("Middlewares already added")

        @self.app.middleware("http")
        async def add_security_headers(request: Request, call_next):
            response = await call_next(request)
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            return response

        app_logger.info("Security middleware added")
        return self

    def add_request_logging_middleware(self) -> ApplicationBuilder:
        """Add request logging middleware."""
        if self._middlewares_added:
            raise RuntimeError("Middlewares already added")

        @self.app.middleware("http")
        async def log_requests(request: Request, call_next):
            response = await call_next(request)
            app_logger.info(
                f"{request.method} {request.url.path}",
                status=response.status_code,
            )
            return response

        app_logger.info("Request logging middleware added")
        return self

    def finalize_middlewares(self) -> ApplicationBuilder:
        """Mark middlewares as finalized."""
        self._middlewares_added = True
        return self

    def add_routes(self) -> ApplicationBuilder:
        """Add all API routes."""
        if self._routes_added:
            raise RuntimeError("Routes already added")

        self.app.include_router(health.router)
        self.app.include_router(platform_analytics.router)

        @self.app.get("/")
        def root():
            return {
                "name": settings.APP_NAME,
                "env": settings.ENV,
                "docs": "/docs",
                "healthz": "/healthz",
                "readyz": "/readyz",
            }

        app_logger.info("All routes added")
        self._routes_added = True
        return self

    def add_startup_handlers(self) -> ApplicationBuilder:
        """Add startup and shutdown handlers (DB check, cache cleanup task, tenant worker pool)."""
        if self._startup_handlers_added:
            raise RuntimeError("Startup handlers already added")

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            app_logger.info("Starting application...")
            try:
                health_check()
                app_logger.info("Database connection validated")
            except SQLAlchemyError as exc:
                # /readyz keeps reporting it
                app_logger.warning(f"Database not reachable at startup: {exc}")

            store: InMemoryCacheStore = app.state.cache_store
            store.start_cleanup(settings.CACHE_CLEANUP_INTERVAL_SECONDS)
            app_logger.info("Application started successfully")
            yield

            app_logger.info("Shutting down application...")
            await store.stop_cleanup()
            app.state.tenant_executor.shutdown(wait=False, cancel_futures=True)
            dispose_engine()

        self.app.router.lifespan_context = lifespan
        self._startup_handlers_added = True
        app_logger.info("Startup handlers added")
        return self

    def add_exception_handlers(self) -> ApplicationBuilder:
        """Add global exception handlers."""

        @self.app.exception_handler(InvalidWindowError)
        async def invalid_window_handler(request: Request, exc: InvalidWindowError):
            return JSONResponse(status_code=400, content={"detail": str(exc)})

        @self.app.exception_handler(TenantRegistryError)
        async def registry_error_handler(request: Request, exc: TenantRegistryError):
            app_logger.error(f"Aggregation aborted: {exc}", path=request.url.path)
            return JSONResponse(status_code=503, content={"detail": str(exc)})

        @self.app.exception_handler(500)
        async def internal_error_handler(request: Request, exc: Exception):
            app_logger.error(f"Internal error: {exc}", exc=exc)
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"},
            )

        app_logger.info("Exception handlers added")
        return self

    def build(self) -> FastAPI:
        """Build and return the configured FastAPI application."""
        if not self._middlewares_added:
            raise RuntimeError("Middlewares not finalized")
        if not self._routes_added:
            raise RuntimeError("Routes not added")
        if not self._startup_handlers_added:
            raise RuntimeError("Startup handlers not added")

        app_logger.info("FastAPI application built successfully")
        return self.app


def create_application(cache_store: Optional[InMemoryCacheStore] = None) -> FastAPI:
    """Create and configure the FastAPI application using the builder pattern."""
    init_app_logging()

    builder = (
        ApplicationBuilder(cache_store)
        .add_cors_middleware()
        .add_security_middleware()
        .add_request_logging_middleware()
        .finalize_middlewares()
        .add_routes()
        .add_startup_handlers()
        .add_exception_handlers()
    )

    return builder.build()
