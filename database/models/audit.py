from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    func,
    JSON,
    Text,
    Index,
)
from database.engine import Base, IdType, enum_column
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


# ============ Audit Enums ============ #
class AuditAction(str, PyEnum):
    """Audit action types."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VIEW = "view"
    EXPORT = "export"
    OVERRIDE = "override"


class AuditResourceType(str, PyEnum):
    """Kinds of records an audit entry can point at."""

    JOB = "job"
    CANDIDATE = "candidate"
    APPLICATION = "application"
    MEMBER = "member"
    ORGANIZATION = "organization"
    SETTINGS = "settings"


# ==================== Models ===================== #
class AuditLog(Base):
    """
    Audit trail for state-changing and data-exporting actions.
    """

    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    # Actor
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(IdType, nullable=False, index=True)

    # Action
    action: Mapped[AuditAction] = mapped_column(
        enum_column(AuditAction, length=20),
        nullable=False,
        index=True,
    )
    resource_type: Mapped[AuditResourceType] = mapped_column(
        enum_column(AuditResourceType, length=30),
        nullable=False,
    )
    resource_id: Mapped[str | None] = mapped_column(String(64))

    # Details
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        Index("idx_audit_logs_org_created", "organization_id", "created_at"),
    )
