"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Redis-based rate limiting
- Bearer JWT authentication
- Role-based authorization with a cached permission resolver
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

from core.middleware.rate_limiting import (
    RateLimitMiddleware,
    RateLimitRule,
    RateLimitStrategy,
    RateLimitWindow,
    SlidingWindowRateLimiter,
    default_rules,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    AuthenticationError,
    get_current_user_id,
    get_current_user_email,
)

from core.middleware.authorization import (
    Permission,
    PermissionResolver,
    ROLE_PERMISSIONS,
    permissions_for_role,
    permission_resolver,
    get_permission_resolver,
    require_permission,
    AuthorizationError,
    OrganizationAccessDenied,
    InsufficientPermissions,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    # Rate limiting
    "RateLimitMiddleware",
    "RateLimitRule",
    "RateLimitStrategy",
    "RateLimitWindow",
    "SlidingWindowRateLimiter",
    "default_rules",
    # Authentication
    "AuthenticationMiddleware",
    "AuthenticationError",
    "get_current_user_id",
    "get_current_user_email",
    # Authorization
    "Permission",
    "PermissionResolver",
    "ROLE_PERMISSIONS",
    "permissions_for_role",
    "permission_resolver",
    "get_permission_resolver",
    "require_permission",
    "AuthorizationError",
    "OrganizationAccessDenied",
    "InsufficientPermissions",
]
