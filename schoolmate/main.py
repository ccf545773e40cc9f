"""Schoolmate FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schoolmate import __version__
from schoolmate.api.middleware import RequestLoggingMiddleware
from schoolmate.api.routes import health, school, tenants
from schoolmate.bootstrap import TenancyServices, build_services
from schoolmate.config.settings import Settings, settings as default_settings
from schoolmate.logging_config import configure_logging
from schoolmate.tenancy.errors import (
    ProvisioningInconsistencyError,
    SchemaRegistryError,
    TenantAlreadyExistsError,
    TenantContextError,
    TenantNotFoundError,
)
from schoolmate.tenancy.resolution import TenantResolutionMiddleware

logger = logging.getLogger(__name__)


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TenantNotFoundError)
    async def tenant_not_found_handler(request: Request, exc: TenantNotFoundError) -> JSONResponse:
        return _envelope(404, str(exc))

    @app.exception_handler(TenantAlreadyExistsError)
    async def tenant_exists_handler(request: Request, exc: TenantAlreadyExistsError) -> JSONResponse:
        return _envelope(409, str(exc))

    @app.exception_handler(TenantContextError)
    async def tenant_context_handler(request: Request, exc: TenantContextError) -> JSONResponse:
        return _envelope(400, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _envelope(400, str(exc))

    @app.exception_handler(ProvisioningInconsistencyError)
    async def inconsistency_handler(
        request: Request, exc: ProvisioningInconsistencyError
    ) -> JSONResponse:
        logger.error("Provisioning inconsistency: %s", exc)
        return _envelope(500, str(exc))

    @app.exception_handler(SchemaRegistryError)
    async def registry_error_handler(request: Request, exc: SchemaRegistryError) -> JSONResponse:
        logger.error("Schema registry failure: %s", exc)
        return _envelope(500, "Tenant storage unavailable")

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return _envelope(500, "Internal server error")


def create_app(
    services: TenancyServices | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        services: Pre-built tenancy services. When omitted they are built
            from ``settings`` at startup and disposed at shutdown.
        settings: Configuration; defaults to the process settings.
    """
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(cfg.LOG_LEVEL)
        owned = services is None
        svc = build_services(cfg) if owned else services
        app.state.services = svc
        app.state.catalog = svc.catalog
        if cfg.SWEEPS_ENABLED:
            svc.start_sweeps()
        try:
            yield
        finally:
            if owned:
                await svc.aclose()
            else:
                await svc.stop_sweeps()

    app = FastAPI(title="Schoolmate", version=__version__, lifespan=lifespan)

    # Pre-built services are available before startup as well
    if services is not None:
        app.state.services = services
        app.state.catalog = services.catalog

    # add_middleware wraps: the last one added runs first
    app.add_middleware(
        TenantResolutionMiddleware,
        header_name=cfg.TENANT_HEADER,
        bypass_prefixes=cfg.TENANT_BYPASS_PREFIXES,
        not_found_status=cfg.TENANT_NOT_FOUND_STATUS,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(tenants.router)
    app.include_router(school.router)

    _register_exception_handlers(app)
    return app


app = create_app()
