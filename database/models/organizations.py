from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Text,
    ForeignKey,
    DateTime,
    func,
    Index,
)
from database.engine import Base, IdType, enum_column
from datetime import datetime
from enum import Enum as PyEnum

if TYPE_CHECKING:
    from database.models.jobs import JobListing
    from database.models.candidates import Candidate


# ==================== Enums ===================== #
class OrganizationRole(str, PyEnum):
    """
    Roles within an organization, from most to least privileged.
    """

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class MemberStatus(str, PyEnum):
    """Membership lifecycle. Only active members hold a role."""

    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class Organization(Base):
    """
    Tenant boundary. Owns members, job listings and candidates.
    """

    __tablename__: str = "organizations"
    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str | None] = mapped_column(String(100))
    website: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    members: Mapped[list["OrganizationMember"]] = relationship(
        "OrganizationMember", back_populates="organization", cascade="all, delete-orphan"
    )
    jobs: Mapped[list["JobListing"]] = relationship(
        "JobListing", back_populates="organization", cascade="all, delete-orphan"
    )
    candidates: Mapped[list["Candidate"]] = relationship(
        "Candidate", back_populates="organization", cascade="all, delete-orphan"
    )


class OrganizationMember(Base):
    """
    Ternary relation (user, organization, role).

    ``user_id`` is the subject of the external auth service. Invited members
    have no user id yet and stay pending until they sign in with the invited
    e-mail.
    """

    __tablename__: str = "organization_members"
    id: Mapped[int] = mapped_column(
        IdType, primary_key=True, nullable=False, autoincrement=True
    )
    organization_id: Mapped[int] = mapped_column(
        IdType,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(String(64), index=True)
    user_email: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[OrganizationRole] = mapped_column(
        enum_column(OrganizationRole, length=20),
        nullable=False,
        default=OrganizationRole.MEMBER,
    )
    status: Mapped[MemberStatus] = mapped_column(
        enum_column(MemberStatus, length=20),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )
    invited_by: Mapped[str | None] = mapped_column(String(64))
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="members"
    )

    # Indexes
    __table_args__ = (
        Index("idx_org_members_org_user", "organization_id", "user_id"),
        Index("idx_org_members_org_role", "organization_id", "role"),
        Index("idx_org_members_email", "user_email"),
    )
