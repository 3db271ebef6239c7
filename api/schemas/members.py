"""Organization member request schemas.

Fields are optional so that missing values produce the member endpoints'
own 400 messages.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class UpdateMemberRequest(BaseModel):
    """Body of ``PATCH /api/organization/update-member``."""

    model_config = ConfigDict(populate_by_name=True)

    member_id: Optional[int] = Field(None, alias="memberId", description="Membership to change")
    role: Optional[str] = Field(None, description="New role: owner, admin, member or viewer")
    organization_id: Optional[int] = Field(None, alias="organizationId")


class DeleteMemberRequest(BaseModel):
    """Body of ``DELETE /api/organization/delete-member``."""

    model_config = ConfigDict(populate_by_name=True)

    member_id: Optional[int] = Field(None, alias="memberId", description="Membership to remove")
    organization_id: Optional[int] = Field(None, alias="organizationId")


class AddMemberRequest(BaseModel):
    """Body of ``POST /api/organization/add-member``."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = Field(None, description="E-mail address to invite")
    role: Optional[str] = Field(None, description="Role granted once the invite is accepted")
    organization_id: Optional[int] = Field(None, alias="organizationId")


class MemberResponse(BaseModel):
    """Outcome of a member change."""

    success: bool = True
    message: str
    member: Optional[dict[str, Any]] = None
