"""
Organization member management endpoints.

The caller's role is always re-read from the database; see
``api.services.members`` for the rules.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_request_context
from api.schemas.members import (
    AddMemberRequest,
    DeleteMemberRequest,
    MemberResponse,
    UpdateMemberRequest,
)
from api.services import members as member_service
from api.services.errors import ServiceError
from core.middleware.authentication import get_current_user_id
from core.middleware.authorization import PermissionResolver, get_permission_resolver
from database.engine import get_db

router = APIRouter(prefix="/organization", tags=["organization"])


@router.patch(
    "/update-member",
    response_model=MemberResponse,
    summary="Update Member Role",
    description="Change a member's role. Owners and admins only.",
)
async def update_member(
    body: UpdateMemberRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    context: dict = Depends(get_request_context),
):
    try:
        return await member_service.update_member_role(
            db,
            user_id=user_id,
            member_id=body.member_id,
            role=body.role,
            organization_id=body.organization_id,
            resolver=resolver,
            **context,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/delete-member",
    response_model=MemberResponse,
    summary="Remove Member",
    description="Remove a member from the organization. Owners and admins only.",
)
async def delete_member(
    body: DeleteMemberRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    context: dict = Depends(get_request_context),
):
    try:
        return await member_service.remove_member(
            db,
            user_id=user_id,
            member_id=body.member_id,
            organization_id=body.organization_id,
            resolver=resolver,
            **context,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/add-member",
    response_model=MemberResponse,
    summary="Invite Member",
    description="Invite an e-mail address as a pending member. Owners and admins only.",
)
async def add_member(
    body: AddMemberRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    context: dict = Depends(get_request_context),
):
    try:
        return await member_service.add_member(
            db,
            user_id=user_id,
            email=body.email,
            role=body.role,
            organization_id=body.organization_id,
            **context,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
