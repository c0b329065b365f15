"""
Health check endpoints for Rolegraph API server.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from fastapi import APIRouter, Request, Response, status

from rolegraph.config import PersistenceBackend, settings
from rolegraph.db.session import get_db_health
from rolegraph.logging_config import get_logger
from rolegraph.persistence import get_persistence_or_none

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(request: Request, response: Response) -> dict[str, str | dict[str, str]]:
    """Readiness probe endpoint.

    Ready once persistence is initialized and the role registry has been
    loaded. The database is only checked when it backs persistence.
    """
    checks: dict[str, str] = {}

    checks["persistence"] = "healthy" if get_persistence_or_none() is not None else "unhealthy"
    if settings.persistence.backend == PersistenceBackend.POSTGRES:
        checks["database"] = "healthy" if await get_db_health() else "unhealthy"

    registry_loaded = getattr(request.app.state, "role_admin", None) is not None
    checks["roles"] = "healthy" if registry_loaded else "unhealthy"

    if not all(v == "healthy" for v in checks.values()):
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}
