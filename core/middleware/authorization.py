"""
Role-based authorization for organization-scoped requests.

Every member of an organization holds exactly one role. A role maps to a
static set of permissions, so a permission check is two steps:

1. Resolve the caller's role in the organization (cached for a short TTL)
2. Test membership of the permission in that role's set

Lookups fail closed: a missing membership, an unknown role or a database
error all resolve to "no permissions".
"""

import logging
import time
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional, Union
from enum import Enum

from fastapi import Depends, Request, status
from fastapi.exceptions import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.cache import TTLCache
from core.config import settings
from core.middleware.authentication import get_current_user_id
from database.engine import AsyncSessionLocal
from database.models.organizations import (
    OrganizationMember,
    OrganizationRole,
    MemberStatus,
)

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "x-organization-id"


class Permission(str, Enum):
    """Organization-scoped permissions, named ``resource.action``."""

    # Jobs
    JOBS_READ = "jobs.read"
    JOBS_CREATE = "jobs.create"
    JOBS_UPDATE = "jobs.update"
    JOBS_DELETE = "jobs.delete"
    JOBS_EXPORT = "jobs.export"

    # Candidates
    CANDIDATES_READ = "candidates.read"
    CANDIDATES_CREATE = "candidates.create"
    CANDIDATES_UPDATE = "candidates.update"
    CANDIDATES_DELETE = "candidates.delete"
    CANDIDATES_EXPORT = "candidates.export"

    # AI
    AI_SHORTLIST = "ai.shortlist"
    APPLICATIONS_OVERRIDE = "applications.override"

    # Members
    MEMBERS_READ = "members.read"
    MEMBERS_INVITE = "members.invite"
    MEMBERS_UPDATE_ROLE = "members.update_role"
    MEMBERS_REMOVE = "members.remove"

    # Settings
    SETTINGS_READ = "settings.read"
    SETTINGS_UPDATE = "settings.update"

    # Audit & usage
    AUDIT_READ = "audit.read"
    USAGE_READ = "usage.read"
    USAGE_EXPORT = "usage.export"

    # Organization
    ORGANIZATION_DELETE = "organization.delete"
    ORGANIZATION_TRANSFER = "organization.transfer"


_VIEWER_PERMISSIONS = frozenset({
    Permission.JOBS_READ,
    Permission.CANDIDATES_READ,
    Permission.MEMBERS_READ,
})

_MEMBER_PERMISSIONS = _VIEWER_PERMISSIONS | {
    Permission.JOBS_CREATE, Permission.JOBS_UPDATE,
    Permission.JOBS_DELETE, Permission.JOBS_EXPORT,
    Permission.CANDIDATES_CREATE, Permission.CANDIDATES_UPDATE,
    Permission.CANDIDATES_DELETE, Permission.CANDIDATES_EXPORT,
    Permission.AI_SHORTLIST,
}

_ADMIN_PERMISSIONS = _MEMBER_PERMISSIONS | {
    Permission.MEMBERS_INVITE, Permission.MEMBERS_UPDATE_ROLE, Permission.MEMBERS_REMOVE,
    Permission.SETTINGS_READ, Permission.SETTINGS_UPDATE,
    Permission.AUDIT_READ,
    Permission.USAGE_READ, Permission.USAGE_EXPORT,
    Permission.APPLICATIONS_OVERRIDE,
}

_OWNER_PERMISSIONS = _ADMIN_PERMISSIONS | {
    Permission.ORGANIZATION_DELETE,
    Permission.ORGANIZATION_TRANSFER,
}

# Role to permission mapping
ROLE_PERMISSIONS: Mapping[OrganizationRole, frozenset[Permission]] = MappingProxyType({
    OrganizationRole.OWNER: _OWNER_PERMISSIONS,
    OrganizationRole.ADMIN: _ADMIN_PERMISSIONS,
    OrganizationRole.MEMBER: _MEMBER_PERMISSIONS,
    OrganizationRole.VIEWER: _VIEWER_PERMISSIONS,
})

NO_PERMISSIONS: frozenset[Permission] = frozenset()


def permissions_for_role(role: Union[OrganizationRole, str, None]) -> frozenset[Permission]:
    """
    Return the permission set of a role. Unknown roles get an empty set.

    Args:
        role: Role enum member or its string value

    Returns:
        Immutable permission set
    """
    if role is None:
        return NO_PERMISSIONS
    try:
        role = OrganizationRole(role)
    except ValueError:
        return NO_PERMISSIONS
    return ROLE_PERMISSIONS.get(role, NO_PERMISSIONS)


class AuthorizationError(Exception):
    """Raised when user doesn't have required permissions."""
    pass


class OrganizationAccessDenied(AuthorizationError):
    """Raised when user doesn't belong to organization."""
    pass


class InsufficientPermissions(AuthorizationError):
    """Raised when user lacks required permission."""
    pass


RoleQuery = Union[OrganizationRole, str, Iterable[Union[OrganizationRole, str]]]


class PermissionResolver:
    """
    Answers "can this user do X in this organization?".

    Roles are read from active ``organization_members`` rows and kept in a
    process-local TTL cache keyed by ``(user_id, organization_id)``. A role
    change made elsewhere becomes visible once the entry expires or
    ``clear_cache`` is called on this process.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.cache: TTLCache[tuple[str, int], OrganizationRole] = TTLCache(
            ttl_seconds if ttl_seconds is not None else settings.role_cache_ttl_seconds,
            clock=clock,
        )

    async def _fetch_role(self, user_id: str, organization_id: int) -> Optional[OrganizationRole]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(OrganizationMember.role).where(
                    OrganizationMember.user_id == user_id,
                    OrganizationMember.organization_id == organization_id,
                    OrganizationMember.status == MemberStatus.ACTIVE,
                ).limit(1)
            )
            return result.scalar_one_or_none()

    async def _fetch_default_organization(self, user_id: str) -> Optional[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(OrganizationMember.organization_id)
                .where(
                    OrganizationMember.user_id == user_id,
                    OrganizationMember.status == MemberStatus.ACTIVE,
                )
                .order_by(OrganizationMember.id)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def resolve_organization_id(
        self,
        user_id: str,
        organization_id: Optional[int] = None,
        cached_organization_id: Optional[int] = None,
    ) -> Optional[int]:
        """
        Pick the organization a check applies to.

        Order: explicit argument, then the organization the client last
        selected, then the user's first active membership.
        """
        if organization_id is not None:
            return organization_id
        if cached_organization_id is not None:
            return cached_organization_id
        try:
            return await self._fetch_default_organization(user_id)
        except Exception as e:
            logger.warning(f"Could not resolve organization for user {user_id}: {e}")
            return None

    async def get_role(self, user_id: str, organization_id: int) -> Optional[OrganizationRole]:
        """
        Role of an active member, or None.

        Only found roles are cached; misses and errors are looked up again
        on the next call.
        """
        if not user_id or organization_id is None:
            return None

        key = (user_id, organization_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            role = await self._fetch_role(user_id, organization_id)
        except Exception as e:
            logger.error(
                f"Role lookup failed for user {user_id} in organization {organization_id}: {e}"
            )
            return None

        if role is None:
            return None

        role = OrganizationRole(role)
        self.cache.set(key, role)
        return role

    async def get_permissions(
        self,
        user_id: str,
        organization_id: Optional[int] = None,
        cached_organization_id: Optional[int] = None,
    ) -> frozenset[Permission]:
        org_id = await self.resolve_organization_id(user_id, organization_id, cached_organization_id)
        if org_id is None:
            return NO_PERMISSIONS
        return permissions_for_role(await self.get_role(user_id, org_id))

    async def can(
        self,
        user_id: str,
        permission: Union[Permission, str],
        organization_id: Optional[int] = None,
        cached_organization_id: Optional[int] = None,
    ) -> bool:
        """
        Check a single permission.

        Args:
            user_id: Authenticated user id
            permission: Permission enum member or ``resource.action`` string
            organization_id: Organization the action targets
            cached_organization_id: Organization the client last selected

        Returns:
            True only if the user is an active member whose role grants it
        """
        try:
            permission = Permission(permission)
        except ValueError:
            logger.warning(f"Unknown permission requested: {permission}")
            return False

        permissions = await self.get_permissions(user_id, organization_id, cached_organization_id)
        return permission in permissions

    async def has_role(
        self,
        user_id: str,
        roles: RoleQuery,
        organization_id: Optional[int] = None,
        cached_organization_id: Optional[int] = None,
    ) -> bool:
        """Check the user's role against one role or any of several."""
        if isinstance(roles, (str, OrganizationRole)):
            roles = [roles]
        allowed = set()
        for role in roles:
            try:
                allowed.add(OrganizationRole(role))
            except ValueError:
                continue

        org_id = await self.resolve_organization_id(user_id, organization_id, cached_organization_id)
        if org_id is None:
            return False
        role = await self.get_role(user_id, org_id)
        return role is not None and role in allowed

    def clear_cache(self, user_id: Optional[str] = None) -> None:
        """Drop cached roles for one user, or for everyone."""
        if user_id is None:
            self.cache.clear()
        else:
            self.cache.delete_where(lambda key: key[0] == user_id)


permission_resolver = PermissionResolver()


def get_permission_resolver() -> PermissionResolver:
    """FastAPI dependency returning the process-wide resolver."""
    return permission_resolver


def _parse_organization_id(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid organization ID",
        )


def get_cached_organization_id(request: Request) -> Optional[int]:
    """Organization the client last selected, sent as ``X-Organization-Id``."""
    return _parse_organization_id(request.headers.get(ORGANIZATION_HEADER))


def require_permission(
    *required_permissions: Permission,
    organization_id_param: str = "organization_id",
) -> Callable:
    """
    Dependency to require specific permissions.

    The organization comes from the path or query parameter named
    ``organization_id_param``, falling back to the ``X-Organization-Id``
    header and then to the user's first active membership.

    Args:
        required_permissions: Required permissions (all must be held)
        organization_id_param: Parameter name for organization ID

    Returns:
        FastAPI dependency resolving to the authorized organization id
    """
    async def dependency(
        request: Request,
        user_id: str = Depends(get_current_user_id),
        resolver: PermissionResolver = Depends(get_permission_resolver),
    ) -> int:
        organization_id = _parse_organization_id(
            request.path_params.get(organization_id_param)
            or request.query_params.get(organization_id_param)
        )
        org_id = await resolver.resolve_organization_id(
            user_id, organization_id, get_cached_organization_id(request)
        )
        if org_id is None:
            raise OrganizationAccessDenied("You are not a member of this organization")

        for permission in required_permissions:
            if not await resolver.can(user_id, permission, org_id):
                logger.warning(
                    f"User {user_id} lacks permission {permission.value} "
                    f"in organization {org_id}"
                )
                raise InsufficientPermissions(f"Missing permission: {permission.value}")
        return org_id

    return dependency
