"""Role endpoints.

Endpoints:
    GET    /roles                                 — list all roles (system + custom)
    POST   /roles                                 — create a custom role
    GET    /roles/{name}                          — show role
    PUT    /roles/{name}                          — save role (body "name" renames)
    DELETE /roles/{name}                          — delete custom role
    GET    /roles/{name}/effective-permissions    — resolved grants incl. inherited
    GET    /roles/{name}/parent-candidates        — roles allowed as parentRole
    POST   /roles/{name}/check-permission         — decide one permission check, with reason
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Response
from fastapi.responses import JSONResponse

from rolegraph.api.dependencies import get_actor, get_role_admin_service
from rolegraph.auth.audit import MAX_USER_ID_LENGTH, Actor
from rolegraph.auth.permissions import permission_from_dict, role_config_from_dict
from rolegraph.services.role_admin_service import RoleAdminService

router = APIRouter(prefix="/roles", tags=["roles"])


def _body_name(body: dict, default: str = "") -> str:
    name = body.get("name", default)
    if not isinstance(name, str):
        raise HTTPException(status_code=422, detail="Role name must be a string")
    return name.strip()


@router.get("")
async def list_roles(
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """List all roles."""
    return JSONResponse(content={"data": [role.to_dict() for role in service.list_roles()]})


@router.post("", status_code=201)
async def create_role(
    body: dict = Body(...),
    actor: Actor = Depends(get_actor),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """Create a custom role. 409 if the name is taken."""
    name = _body_name(body)
    config = role_config_from_dict(body, role_name=name)
    role = await service.create_role(name, config, actor)
    return JSONResponse(content={"data": role.to_dict()}, status_code=201)


@router.get("/{role_name}")
async def show_role(
    role_name: str = Path(...),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """Show a role by name."""
    return JSONResponse(content={"data": service.get_role(role_name).to_dict()})


@router.put("/{role_name}")
async def save_role(
    role_name: str = Path(...),
    body: dict = Body(...),
    actor: Actor = Depends(get_actor),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """Create or update a role. A different "name" in the body renames it."""
    name = _body_name(body, default=role_name)
    config = role_config_from_dict(body, role_name=name)
    previous_name = role_name if name != role_name else None
    role = await service.save_role(name, config, actor, previous_name=previous_name)
    return JSONResponse(content={"data": role.to_dict()})


@router.delete("/{role_name}", status_code=204)
async def delete_role(
    role_name: str = Path(...),
    actor: Actor = Depends(get_actor),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> Response:
    """Delete a custom role."""
    await service.delete_role(role_name, actor)
    return Response(status_code=204)


@router.get("/{role_name}/effective-permissions")
async def effective_permissions(
    role_name: str = Path(...),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """Permissions, portals and abilities after walking the inheritance chain."""
    return JSONResponse(content={"data": service.resolve_permissions(role_name).to_dict()})


@router.get("/{role_name}/parent-candidates")
async def parent_candidates(
    role_name: str = Path(...),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """Role names that can be chosen as parentRole without creating a cycle."""
    return JSONResponse(content={"data": service.parent_candidates(role_name)})


@router.post("/{role_name}/check-permission")
async def check_permission(
    role_name: str = Path(...),
    body: dict = Body(...),
    actor: Actor = Depends(get_actor),
    service: RoleAdminService = Depends(get_role_admin_service),
) -> JSONResponse:
    """Decide {resource, action, scope} for the role and say why.

    "logAccess" overrides the configured access logging for this check.
    """
    requested = permission_from_dict(body, role_name=role_name)

    target_id = body.get("targetId")
    if target_id is not None and (
        not isinstance(target_id, str) or len(target_id) > MAX_USER_ID_LENGTH
    ):
        raise HTTPException(status_code=422, detail="targetId must be a short string")
    log_access = body.get("logAccess")
    if log_access is not None and not isinstance(log_access, bool):
        raise HTTPException(status_code=422, detail="logAccess must be true or false")

    decision = await service.check_permission(
        role_name,
        requested.resource,
        requested.action,
        requested.scope,
        actor=actor,
        target_id=target_id,
        log_access=log_access,
    )
    return JSONResponse(content={"data": decision.to_dict()})
