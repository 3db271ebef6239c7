"""Endpoint exposing the caller's role and permissions in an organization."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from core.middleware.authentication import get_current_user_id
from core.middleware.authorization import (
    PermissionResolver,
    get_cached_organization_id,
    get_permission_resolver,
    permissions_for_role,
)

router = APIRouter(tags=["permissions"])


class PermissionsResponse(BaseModel):
    """Role and permission list for one organization."""

    model_config = ConfigDict(populate_by_name=True)

    organization_id: Optional[int] = Field(alias="organizationId")
    role: Optional[str]
    permissions: list[str]


@router.get(
    "/permissions",
    response_model=PermissionsResponse,
    summary="My Permissions",
    description="Role and permissions of the caller. Non-members get an empty list.",
)
async def get_my_permissions(
    request: Request,
    organization_id: Optional[int] = Query(None, description="Organization to check"),
    user_id: str = Depends(get_current_user_id),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    org_id = await resolver.resolve_organization_id(
        user_id, organization_id, get_cached_organization_id(request)
    )
    role = await resolver.get_role(user_id, org_id) if org_id is not None else None
    return {
        "organizationId": org_id,
        "role": role.value if role else None,
        "permissions": sorted(p.value for p in permissions_for_role(role)),
    }
