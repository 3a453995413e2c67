"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mibuks.config.logging import setup_logging
from mibuks.config.settings import get_settings
from mibuks.exceptions import ConfigError, InputValidationError, MiBuksError
from mibuks.storage.database import get_engine, init_db
from mibuks.types import ErrorKind
from mibuks.web.dependencies import build_services
from mibuks.web.middleware import RequestIDMiddleware
from mibuks.web.routes.access import router as access_router
from mibuks.web.routes.admin import router as admin_router
from mibuks.web.routes.auth import router as auth_router
from mibuks.web.routes.changes import router as changes_router
from mibuks.web.routes.onboarding import router as onboarding_router
from mibuks.web.routes.resources import router as resources_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.TENANT_CONFLICT: 409,
    ErrorKind.TRANSIENT_STORAGE: 503,
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
}


def create_app(engine: AsyncEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)
    engine = engine if engine is not None else get_engine()
    services = build_services(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await init_db(engine)
        yield
        services.feed.close()

    app = FastAPI(
        title="MiBuks",
        description="Business hub for small shops and their NGO partners",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    @app.exception_handler(MiBuksError)
    async def mibuks_error_handler(request: Request, exc: MiBuksError) -> JSONResponse:
        if isinstance(exc, ConfigError):
            logger.error("config_error", path=request.url.path, error=str(exc))
            return JSONResponse(status_code=500, content={"detail": "Server misconfigured"})
        content: dict[str, object] = {"detail": str(exc), "kind": exc.kind.value}
        if isinstance(exc, InputValidationError) and exc.errors:
            content["errors"] = exc.errors
        return JSONResponse(status_code=_STATUS_BY_KIND[exc.kind], content=content)

    # Middleware (order matters: last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        from mibuks.web.health import check_health

        return await check_health(engine)

    # Fixed paths first; the generic /api/{resource} routes go last.
    for router in (
        auth_router,
        access_router,
        onboarding_router,
        admin_router,
        changes_router,
        resources_router,
    ):
        app.include_router(router)

    logger.info("app_created")
    return app
