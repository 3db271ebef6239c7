"""
API Services Layer.

Database operations and orchestration behind the API endpoints,
separate from the AI agents they call.
"""

from api.services.errors import (
    ServiceError,
    MemberPolicyError,
    ShortlistError,
)

from api.services.audit import (
    log_audit,
    get_audit_logs,
)

from api.services.usage import (
    calculate_cost,
    log_api_usage,
    make_usage_recorder,
    get_usage_summary,
    list_usage_logs,
    format_cost,
    format_tokens,
)

from api.services.members import (
    update_member_role,
    remove_member,
    add_member,
)

from api.services.shortlisting import (
    ShortlistingService,
    aggregate_status,
    override_application,
)

__all__ = [
    # Errors
    "ServiceError",
    "MemberPolicyError",
    "ShortlistError",
    # Audit
    "log_audit",
    "get_audit_logs",
    # Usage
    "calculate_cost",
    "log_api_usage",
    "make_usage_recorder",
    "get_usage_summary",
    "list_usage_logs",
    "format_cost",
    "format_tokens",
    # Members
    "update_member_role",
    "remove_member",
    "add_member",
    # Shortlisting
    "ShortlistingService",
    "aggregate_status",
    "override_application",
]
