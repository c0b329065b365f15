"""
FastAPI dependencies for the role admin API.

Authentication happens in the portal gateway in front of this service; the
gateway forwards the authenticated user's id in X-User-ID. The client address
and User-Agent are recorded alongside it in the audit trail.
"""

from fastapi import Header, HTTPException, Request

from rolegraph.auth.audit import MAX_USER_ID_LENGTH, Actor
from rolegraph.services.role_admin_service import RoleAdminService

MAX_USER_AGENT_LENGTH = 500


def get_role_admin_service(request: Request) -> RoleAdminService:
    """Return the service instance created during app startup."""
    service = getattr(request.app.state, "role_admin", None)
    if service is None:
        raise RuntimeError("Role admin service not initialized")
    return service


async def get_actor(
    request: Request,
    x_user_id: str | None = Header(default=None),
) -> Actor:
    """Actor metadata for mutating requests. 401 without X-User-ID."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=422,
            detail=f"X-User-ID must be at most {MAX_USER_ID_LENGTH} characters",
        )

    user_agent = request.headers.get("user-agent", "")[:MAX_USER_AGENT_LENGTH]
    return Actor(
        user_id=user_id,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent or None,
    )
