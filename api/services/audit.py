"""
Audit trail service.

Records who changed what inside an organization. Writing an audit entry
must never break the request that triggered it.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.security import mask_pii
from database.models.audit import AuditAction, AuditLog, AuditResourceType

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_LIMIT = 100


async def log_audit(
    session: AsyncSession,
    user_id: str,
    organization_id: int,
    action: AuditAction,
    resource_type: AuditResourceType,
    resource_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[AuditLog]:
    """
    Insert an audit entry and commit it.

    Args:
        session: Database session
        user_id: Acting user
        organization_id: Organization the action happened in
        action: What was done
        resource_type: Kind of resource acted on
        resource_id: Identifier of the resource, stored as text
        details: Extra JSON context (old/new values, counts)
        ip_address: Client address, if known
        user_agent: Client user agent, if known

    Returns:
        The stored entry, or None if it could not be written
    """
    entry = AuditLog(
        user_id=user_id,
        organization_id=organization_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        session.add(entry)
        await session.commit()
    except Exception as e:
        logger.error(
            f"Failed to write audit log {action.value} {resource_type.value} "
            f"in organization {organization_id}: {e}"
        )
        await session.rollback()
        return None

    message = f"Audit: user {user_id} {action.value} {resource_type.value} {resource_id or ''}".rstrip()
    if details:
        message += f" {mask_pii(details)}"
    logger.info(message)
    return entry


async def get_audit_logs(
    session: AsyncSession,
    organization_id: int,
    user_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    resource_type: Optional[AuditResourceType] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = DEFAULT_AUDIT_LIMIT,
    offset: int = 0,
) -> List[AuditLog]:
    """
    List audit entries for an organization, newest first.

    Args:
        session: Database session
        organization_id: Organization to read
        user_id: Only entries by this user
        action: Only this action
        resource_type: Only this resource type
        start: Only entries at or after this time
        end: Only entries at or before this time
        limit: Maximum number of entries
        offset: Number of entries to skip

    Returns:
        List of audit entries
    """
    query = select(AuditLog).where(AuditLog.organization_id == organization_id)
    if user_id:
        query = query.where(AuditLog.user_id == user_id)
    if action:
        query = query.where(AuditLog.action == action)
    if resource_type:
        query = query.where(AuditLog.resource_type == resource_type)
    if start:
        query = query.where(AuditLog.created_at >= start)
    if end:
        query = query.where(AuditLog.created_at <= end)

    query = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(query)
    return list(result.scalars().all())
