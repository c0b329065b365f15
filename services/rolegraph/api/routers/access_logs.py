"""Permission access log endpoints.

Endpoints:
    GET /permission-access-logs?user_id=&role=&resource=&action=&granted=&limit=   — newest first
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from rolegraph.api.dependencies import get_role_admin_service
from rolegraph.config import settings
from rolegraph.services.role_admin_service import RoleAdminService

router = APIRouter(prefix="/permission-access-logs", tags=["audit"])


@router.get("")
async def list_access_logs(
    user_id: str | None = Query(default=None),
    role: str | None = Query(default=None),
    resource: str | None = Query(default=None),
    action: str | None = Query(default=None),
    granted: bool | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=settings.audit.max_limit),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """List recorded permission checks, newest first."""
    attempts = await service.get_access_logs(
        user_id=user_id,
        role_name=role,
        resource=resource,
        action=action,
        granted=granted,
        limit=limit,
    )
    return JSONResponse(content={"data": [a.to_dict() for a in attempts]})
