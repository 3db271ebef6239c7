"""
Organization member management.

Every change re-reads the caller's active membership from the database; a
client-supplied role is never trusted. Rules:

- Only owners and admins manage members
- Only owners touch other owners or promote to owner
- Nobody changes or removes their own membership
- An organization always keeps at least one active owner
"""

from datetime import datetime, timezone
import logging
import re
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.audit import log_audit
from api.services.errors import MemberPolicyError
from core.middleware.authorization import PermissionResolver, permission_resolver
from database.models.audit import AuditAction, AuditResourceType
from database.models.organizations import (
    MemberStatus,
    OrganizationMember,
    OrganizationRole,
)

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MANAGER_ROLES = frozenset({OrganizationRole.OWNER, OrganizationRole.ADMIN})


def serialize_member(member: OrganizationMember) -> Dict[str, Any]:
    return {
        "id": member.id,
        "organization_id": member.organization_id,
        "user_id": member.user_id,
        "user_email": member.user_email,
        "role": member.role.value,
        "status": member.status.value,
        "invited_by": member.invited_by,
        "invited_at": member.invited_at.isoformat() if member.invited_at else None,
        "joined_at": member.joined_at.isoformat() if member.joined_at else None,
        "created_at": member.created_at.isoformat() if member.created_at else None,
        "updated_at": member.updated_at.isoformat() if member.updated_at else None,
    }


def _parse_role(role: str) -> OrganizationRole:
    try:
        return OrganizationRole(role)
    except ValueError:
        raise MemberPolicyError(400, "Invalid role")


async def get_active_membership(
    session: AsyncSession, organization_id: int, user_id: str
) -> Optional[OrganizationMember]:
    result = await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
            OrganizationMember.status == MemberStatus.ACTIVE,
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def _require_manager(
    session: AsyncSession, organization_id: int, user_id: str, action: str
) -> OrganizationMember:
    current = await get_active_membership(session, organization_id, user_id)
    if current is None:
        raise MemberPolicyError(403, "You are not a member of this organization")
    if current.role not in MANAGER_ROLES:
        raise MemberPolicyError(
            403, f"Only organization owners and admins can {action}"
        )
    return current


async def _get_target(
    session: AsyncSession, organization_id: int, member_id: int
) -> OrganizationMember:
    result = await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.id == member_id,
            OrganizationMember.organization_id == organization_id,
        )
    )
    target = result.scalar_one_or_none()
    if target is None:
        raise MemberPolicyError(404, "Member not found")
    return target


async def count_active_owners(session: AsyncSession, organization_id: int) -> int:
    result = await session.execute(
        select(func.count(OrganizationMember.id)).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role == OrganizationRole.OWNER,
            OrganizationMember.status == MemberStatus.ACTIVE,
        )
    )
    return result.scalar_one()


async def update_member_role(
    session: AsyncSession,
    user_id: str,
    member_id: Optional[int],
    role: Optional[str],
    organization_id: Optional[int],
    resolver: PermissionResolver = permission_resolver,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Change a member's role.

    Args:
        session: Database session
        user_id: Authenticated caller
        member_id: Membership row to change
        role: New role name
        organization_id: Organization the member belongs to
        resolver: Resolver whose cached role for the target is dropped
        ip_address: Client address for the audit entry
        user_agent: Client user agent for the audit entry

    Returns:
        Dictionary with success, the updated member and a message

    Raises:
        MemberPolicyError: With the HTTP status of the violated rule
    """
    if not member_id or not role or not organization_id:
        raise MemberPolicyError(400, "Member ID, role, and organization ID are required")
    new_role = _parse_role(role)

    current = await _require_manager(session, organization_id, user_id, "update member roles")
    target = await _get_target(session, organization_id, member_id)

    if target.role == OrganizationRole.OWNER and current.role != OrganizationRole.OWNER:
        raise MemberPolicyError(403, "Only owners can modify other owners")
    if new_role == OrganizationRole.OWNER and current.role != OrganizationRole.OWNER:
        raise MemberPolicyError(403, "Only owners can promote members to owner")
    if target.user_id == user_id:
        raise MemberPolicyError(403, "You cannot change your own role")

    old_role = target.role
    target.role = new_role
    target.updated_at = datetime.now(timezone.utc)
    await session.commit()
    await session.refresh(target)

    logger.info(
        f"User {user_id} changed member {target.id} in organization {organization_id} "
        f"from {old_role.value} to {new_role.value}"
    )
    if target.user_id:
        resolver.clear_cache(target.user_id)
    member = serialize_member(target)

    await log_audit(
        session,
        user_id=user_id,
        organization_id=organization_id,
        action=AuditAction.UPDATE,
        resource_type=AuditResourceType.MEMBER,
        resource_id=target.id,
        details={"old_role": old_role.value, "new_role": new_role.value},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {
        "success": True,
        "member": member,
        "message": f"Successfully updated role to {new_role.value}",
    }


async def remove_member(
    session: AsyncSession,
    user_id: str,
    member_id: Optional[int],
    organization_id: Optional[int],
    resolver: PermissionResolver = permission_resolver,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Remove a member from an organization.

    Raises:
        MemberPolicyError: With the HTTP status of the violated rule
    """
    if not member_id or not organization_id:
        raise MemberPolicyError(400, "Member ID and organization ID are required")

    current = await _require_manager(session, organization_id, user_id, "remove members")
    target = await _get_target(session, organization_id, member_id)

    if target.role == OrganizationRole.OWNER and current.role != OrganizationRole.OWNER:
        raise MemberPolicyError(403, "Only owners can remove other owners")
    if target.user_id == user_id:
        raise MemberPolicyError(403, "You cannot remove yourself from the organization")
    if target.role == OrganizationRole.OWNER:
        if await count_active_owners(session, organization_id) <= 1:
            raise MemberPolicyError(403, "Cannot remove the last owner of the organization")

    removed = {
        "id": target.id,
        "user_id": target.user_id,
        "user_email": target.user_email,
        "role": target.role.value,
    }
    await session.delete(target)
    await session.commit()

    logger.info(
        f"User {user_id} removed member {removed['id']} from organization {organization_id}"
    )
    if removed["user_id"]:
        resolver.clear_cache(removed["user_id"])

    await log_audit(
        session,
        user_id=user_id,
        organization_id=organization_id,
        action=AuditAction.DELETE,
        resource_type=AuditResourceType.MEMBER,
        resource_id=removed["id"],
        details={"email": removed["user_email"], "role": removed["role"]},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {"success": True, "message": "Member removed successfully"}


async def add_member(
    session: AsyncSession,
    user_id: str,
    email: Optional[str],
    role: Optional[str],
    organization_id: Optional[int],
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Invite someone to an organization by e-mail.

    The invite is stored as a pending member without a user id; it becomes
    active once the invited person signs in.

    Raises:
        MemberPolicyError: With the HTTP status of the violated rule
    """
    if not email or not role or not organization_id:
        raise MemberPolicyError(400, "Email, role, and organization ID are required")
    if not EMAIL_RE.match(email):
        raise MemberPolicyError(400, "Invalid email format")
    new_role = _parse_role(role)

    current = await _require_manager(session, organization_id, user_id, "add members")
    if new_role == OrganizationRole.OWNER and current.role != OrganizationRole.OWNER:
        raise MemberPolicyError(403, "Only owners can promote members to owner")

    normalized = email.lower()
    existing = await session.execute(
        select(OrganizationMember.id).where(
            OrganizationMember.organization_id == organization_id,
            func.lower(OrganizationMember.user_email) == normalized,
        ).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise MemberPolicyError(400, "This email is already a member of this organization")

    member = OrganizationMember(
        organization_id=organization_id,
        user_id=None,
        user_email=normalized,
        role=new_role,
        status=MemberStatus.PENDING,
        invited_by=user_id,
        invited_at=datetime.now(timezone.utc),
    )
    session.add(member)
    await session.commit()
    await session.refresh(member)

    logger.info(f"User {user_id} invited {normalized} to organization {organization_id}")
    payload = serialize_member(member)

    await log_audit(
        session,
        user_id=user_id,
        organization_id=organization_id,
        action=AuditAction.CREATE,
        resource_type=AuditResourceType.MEMBER,
        resource_id=member.id,
        details={"email": normalized, "role": new_role.value},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return {
        "success": True,
        "member": payload,
        "message": f"Successfully invited {email} to the organization",
    }
