"""Role audit log endpoints.

Endpoints:
    GET /role-audit-logs?role=&limit=   — newest first, each with its config diff
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from rolegraph.api.dependencies import get_role_admin_service
from rolegraph.auth.audit import AuditLogEntry
from rolegraph.config import settings
from rolegraph.services.audit_service import AuditLog
from rolegraph.services.role_admin_service import RoleAdminService

router = APIRouter(prefix="/role-audit-logs", tags=["audit"])


def _entry_json(entry: AuditLogEntry) -> dict:
    data = entry.to_dict()
    data["diff"] = AuditLog.diff(entry).to_dict()
    return data


@router.get("")
async def list_audit_logs(
    role: str | None = Query(default=None, description="Only entries for this role"),
    limit: int | None = Query(default=None, ge=1, le=settings.audit.max_limit),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """List role audit entries, newest first."""
    entries = await service.get_audit_logs(role_name=role, limit=limit)
    return JSONResponse(content={"data": [_entry_json(e) for e in entries]})
