"""
FastAPI application factory for Rolegraph API server.

Uses lifespan handler for startup/shutdown with async resource management.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rolegraph.config import settings
from rolegraph.errors import (
    DuplicateRoleError,
    PersistenceError,
    RoleError,
    RoleNotFoundError,
)
from rolegraph.logging_config import configure_logging, get_logger
from rolegraph.persistence import close_persistence, init_persistence
from rolegraph.services.role_admin_service import create_role_admin_service

from .health import router as health_router

logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting Rolegraph API server", version=VERSION)

    persistence = await init_persistence()

    app.state.role_admin = await create_role_admin_service(
        persistence,
        seed_builtin=settings.persistence.seed_builtin_roles,
        default_audit_limit=settings.audit.default_limit,
        max_audit_limit=settings.audit.max_limit,
        log_access=settings.audit.log_access_attempts,
    )
    logger.info("Role registry loaded", roles=len(app.state.role_admin.list_roles()))

    yield

    logger.info("Shutting down Rolegraph API server")
    app.state.role_admin = None
    await close_persistence()


def error_status(exc: RoleError) -> int:
    """HTTP status for a role registry error."""
    if isinstance(exc, RoleNotFoundError):
        return 404
    if isinstance(exc, DuplicateRoleError):
        return 409
    if isinstance(exc, PersistenceError):
        return 503
    return 422


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Rolegraph API",
        description="Role-based access control registry for the business portals",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # CORS middleware
    if settings.cors.allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors.allow_origins,
            allow_credentials=settings.cors.allow_credentials,
            allow_methods=settings.cors.allow_methods,
            allow_headers=settings.cors.allow_headers,
        )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Bind a request ID into the structlog context for the request's lifetime."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RoleError)
    async def role_error_handler(request: Request, exc: RoleError) -> JSONResponse:
        """Render registry errors with the role and field they concern."""
        status_code = error_status(exc)
        if status_code >= 500:
            logger.error(
                "Role persistence failed",
                path=str(request.url.path),
                role=exc.role_name,
                error=str(exc),
            )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": type(exc).__name__,
                "detail": str(exc),
                "role": exc.role_name,
                "field": exc.field,
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health endpoints (no prefix)
    app.include_router(health_router)

    from rolegraph.api.routers.roles import router as roles_router

    app.include_router(roles_router, prefix=settings.api_prefix)

    from rolegraph.api.routers.audit_logs import router as audit_logs_router

    app.include_router(audit_logs_router, prefix=settings.api_prefix)

    from rolegraph.api.routers.access_logs import router as access_logs_router

    app.include_router(access_logs_router, prefix=settings.api_prefix)

    return app


# Application instance
app = create_application()
